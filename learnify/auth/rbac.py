from dataclasses import dataclass
from typing import Dict

from fastapi import Depends, HTTPException, status

from learnify.auth.dependencies import get_current_user
from learnify.auth.schemas import CurrentUser
from learnify.core.enums import UserRole


@dataclass(frozen=True)
class RoleCapabilities:
    can_approve: bool = False
    can_manage_school: bool = False
    can_enroll: bool = False


ROLE_CAPABILITIES: Dict[str, RoleCapabilities] = {
    UserRole.ADMIN.value: RoleCapabilities(can_approve=True, can_manage_school=True),
    UserRole.TEACHER.value: RoleCapabilities(),
    UserRole.STUDENT.value: RoleCapabilities(can_enroll=True),
    UserRole.PARENT.value: RoleCapabilities(),
}


def has_capability(role: str, capability: str) -> bool:
    caps = ROLE_CAPABILITIES.get(role)
    if caps is None:
        return False
    return bool(getattr(caps, capability, False))


def require_capability(capability: str):
    """
    Dependency factory to enforce a role capability.

    Example:
        Depends(require_capability("can_approve"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_capability(current_user.role, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


require_admin = require_capability("can_manage_school")
