"""Role -> {module: {action: allowed}} mapping for gradebook roles."""

from typing import Dict

from gradebook.core.enums import UserRole

GRADEBOOK = "gradebook"
GRADE_SCALES = "grade_scales"

_GRADEBOOK_ALL = {"read": True, "create": True, "update": True, "delete": True, "approve": True, "audit": True}

ROLE_PERMISSIONS: Dict[str, Dict[str, Dict[str, bool]]] = {
    UserRole.SUPER_ADMIN.value: {
        GRADEBOOK: dict(_GRADEBOOK_ALL),
        GRADE_SCALES: {"read": True, "manage": True},
    },
    UserRole.SCHOOL_ADMIN.value: {
        GRADEBOOK: dict(_GRADEBOOK_ALL),
        GRADE_SCALES: {"read": True, "manage": True},
    },
    # Teachers request overrides; only admins approve them.
    UserRole.TEACHER.value: {
        GRADEBOOK: {"read": True, "create": True, "update": True},
        GRADE_SCALES: {"read": True},
    },
    UserRole.STUDENT.value: {},
    UserRole.PARENT.value: {},
}


def permissions_for_role(role: str) -> Dict[str, Dict[str, bool]]:
    return {module: dict(actions) for module, actions in ROLE_PERMISSIONS.get(role, {}).items()}
