from typing import Dict, Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    school_id is resolved from verified token claims only.
    """

    id: str
    school_id: int
    role: str
    permissions: Dict[str, Dict[str, bool]]
    teacher_id: Optional[int] = None
