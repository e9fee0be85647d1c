import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.permissions import permissions_for_role
from gradebook.auth.schemas import CurrentUser
from gradebook.auth.security import decode_access_token
from gradebook.core.exceptions import TenantResolutionError
from gradebook.core.models import School
from gradebook.db.session import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_DENIED_MESSAGE = "Access denied"


def _parse_id(raw: Any) -> Optional[int]:
    """Positive integer id from a claim value, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return value if value > 0 else None


def _app_metadata(claims: Dict[str, Any]) -> Dict[str, Any]:
    app_metadata = claims.get("app_metadata")
    return app_metadata if isinstance(app_metadata, dict) else {}


def resolve_school_id(claims: Dict[str, Any]) -> int:
    """
    Resolve the caller's school from verified claims.

    Accepted: top-level school_id / schoolId, or app_metadata.school_id.
    user_metadata is writable by end users at the identity provider and is ignored.
    """
    app_metadata = _app_metadata(claims)
    for raw in (claims.get("school_id"), claims.get("schoolId"), app_metadata.get("school_id")):
        school_id = _parse_id(raw)
        if school_id is not None:
            return school_id
    raise TenantResolutionError()


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise credentials_exception
    try:
        return decode_access_token(credentials.credentials)
    except JWTError:
        raise credentials_exception


async def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Isolation guard: resolve the authenticated user and their school, or stop the request."""
    user_id = claims.get("sub") or claims.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        school_id = resolve_school_id(claims)
    except TenantResolutionError as e:
        logger.warning("Token for user %s carries no school_id claim", user_id)
        raise HTTPException(status_code=e.status_code, detail=e.message)

    school = (
        await db.execute(select(School).where(School.id == school_id))
    ).scalar_one_or_none()
    if not school or school.status != "ACTIVE":
        logger.warning("Token for user %s names an unknown or inactive school", user_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED_MESSAGE)

    role = claims.get("role") or _app_metadata(claims).get("role") or ""
    if not isinstance(role, str):
        role = ""

    return CurrentUser(
        id=str(user_id),
        school_id=school_id,
        role=role,
        permissions=permissions_for_role(role),
        teacher_id=_parse_id(claims.get("teacher_id")),
    )
