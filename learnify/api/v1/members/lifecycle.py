"""
Member lifecycle transitions.

    pending_verification -> active | rejected
    active <-> disabled
    rejected is terminal

Reaching a state the user is already in is reported, not raised.
"""

from typing import Dict, FrozenSet, Optional, Tuple

from learnify.core.enums import UserStatus
from learnify.core.exceptions import InvalidTransition

APPROVE = "approve"
REJECT = "reject"
DISABLE = "disable"
REENABLE = "reenable"

LIFECYCLE_TRANSITIONS: Dict[str, Tuple[FrozenSet[str], str]] = {
    APPROVE: (frozenset({UserStatus.PENDING_VERIFICATION.value}), UserStatus.ACTIVE.value),
    REJECT: (frozenset({UserStatus.PENDING_VERIFICATION.value}), UserStatus.REJECTED.value),
    DISABLE: (frozenset({UserStatus.ACTIVE.value}), UserStatus.DISABLED.value),
    REENABLE: (frozenset({UserStatus.DISABLED.value}), UserStatus.ACTIVE.value),
}


def plan_transition(current_status: str, action: str) -> Optional[str]:
    """Target status for `action`, or None when the user is already there."""
    allowed_from, target = LIFECYCLE_TRANSITIONS[action]
    if current_status == target:
        return None
    if current_status not in allowed_from:
        raise InvalidTransition(current_status, action)
    return target
