from typing import Dict

from fastapi import Depends, HTTPException, status

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.permissions import GRADEBOOK
from gradebook.auth.schemas import CurrentUser
from gradebook.core.enums import UserRole


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("gradebook", "update"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if current_user.role == UserRole.SUPER_ADMIN.value:
            return
        permissions: Dict[str, Dict[str, bool]] = current_user.permissions or {}
        module_perms = permissions.get(module, {})
        if not module_perms.get(action, False):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker


# Grade-management authority: approving overrides.
require_grade_manager = check_permission(GRADEBOOK, "approve")
