"""
Route guard: decides which part of the application a user may reach next.

next_allowed_view is pure and total; callers re-evaluate it on every navigation.
ONBOARDING_STEP_VIEWS is the only step -> view mapping in the codebase.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from learnify.core.enums import OnboardingStep, UserRole, UserStatus, ViewToken

ONBOARDING_STEP_VIEWS: Dict[int, ViewToken] = {
    OnboardingStep.CREATE_SCHOOL: ViewToken.ONBOARDING_CREATE_SCHOOL,
    OnboardingStep.ADD_SUBJECTS: ViewToken.ONBOARDING_ADD_SUBJECTS,
    OnboardingStep.CREATE_CLASSES: ViewToken.ONBOARDING_CREATE_CLASSES,
    OnboardingStep.INVITE_USERS: ViewToken.ONBOARDING_INVITE_USERS,
    OnboardingStep.CONFIGURE_SETTINGS: ViewToken.ONBOARDING_CONFIGURE_SETTINGS,
}

ROLE_APP_VIEWS: Dict[str, ViewToken] = {
    UserRole.ADMIN.value: ViewToken.ADMIN_APP,
    UserRole.TEACHER.value: ViewToken.TEACHER_APP,
    UserRole.STUDENT.value: ViewToken.STUDENT_APP,
    UserRole.PARENT.value: ViewToken.PARENT_APP,
}

_BLOCKED_STATUSES = (UserStatus.REJECTED.value, UserStatus.DISABLED.value)


@dataclass(frozen=True)
class RouteSubject:
    """The slice of a user profile the guard looks at."""

    role: str
    status: str
    school_id: Optional[UUID] = None
    onboarding_step: Optional[int] = None
    class_ids: FrozenSet[UUID] = field(default_factory=frozenset)


def view_for_onboarding_step(step: Optional[int]) -> ViewToken:
    return ONBOARDING_STEP_VIEWS.get(step, ViewToken.ONBOARDING_CREATE_SCHOOL)


def next_allowed_view(user: Optional[RouteSubject]) -> ViewToken:
    if user is None:
        return ViewToken.LOGIN

    role = user.role
    if role == UserRole.ADMIN.value:
        if user.school_id is None:
            return ViewToken.ONBOARDING_CREATE_SCHOOL
        if user.onboarding_step is not None:
            return view_for_onboarding_step(user.onboarding_step)
        return ViewToken.ADMIN_APP

    if user.status == UserStatus.PENDING_VERIFICATION.value:
        return ViewToken.PENDING_VERIFICATION
    if user.status in _BLOCKED_STATUSES:
        return ViewToken.ACCOUNT_BLOCKED
    if user.school_id is None:
        return ViewToken.JOIN_SCHOOL
    if role == UserRole.STUDENT.value and not user.class_ids:
        return ViewToken.STUDENT_ENROLLMENT
    # Unknown roles never reach an app
    return ROLE_APP_VIEWS.get(role, ViewToken.LOGIN)
