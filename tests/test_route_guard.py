import itertools
import uuid

import pytest

from learnify.core.enums import OnboardingStep, ViewToken
from learnify.core.route_guard import (
    ONBOARDING_STEP_VIEWS,
    RouteSubject,
    next_allowed_view,
    view_for_onboarding_step,
)

SCHOOL_ID = uuid.uuid4()
CLASS_ID = uuid.uuid4()


def test_no_user_goes_to_login() -> None:
    assert next_allowed_view(None) == ViewToken.LOGIN


def test_total_over_every_profile_shape() -> None:
    roles = ["admin", "teacher", "student", "parent", "ghost"]
    statuses = ["pending_verification", "active", "rejected", "disabled", "weird"]
    schools = [None, SCHOOL_ID]
    steps = [None, -1, 0, 1, 2, 3, 4, 5, 99]
    class_sets = [frozenset(), frozenset({CLASS_ID})]

    for role, status, school_id, step, class_ids in itertools.product(roles, statuses, schools, steps, class_sets):
        subject = RouteSubject(
            role=role,
            status=status,
            school_id=school_id,
            onboarding_step=step,
            class_ids=class_ids,
        )
        assert isinstance(next_allowed_view(subject), ViewToken)


def test_admin_without_school_creates_one() -> None:
    admin = RouteSubject(role="admin", status="active", onboarding_step=0)
    assert next_allowed_view(admin) == ViewToken.ONBOARDING_CREATE_SCHOOL


@pytest.mark.parametrize("step", list(OnboardingStep))
def test_admin_step_maps_to_its_view(step: OnboardingStep) -> None:
    admin = RouteSubject(role="admin", status="active", school_id=SCHOOL_ID, onboarding_step=int(step))
    assert next_allowed_view(admin) == ONBOARDING_STEP_VIEWS[step]


def test_out_of_range_step_falls_back_to_create_school() -> None:
    assert view_for_onboarding_step(42) == ViewToken.ONBOARDING_CREATE_SCHOOL
    admin = RouteSubject(role="admin", status="active", school_id=SCHOOL_ID, onboarding_step=42)
    assert next_allowed_view(admin) == ViewToken.ONBOARDING_CREATE_SCHOOL


def test_admin_with_finished_setup_reaches_app() -> None:
    admin = RouteSubject(role="admin", status="active", school_id=SCHOOL_ID, onboarding_step=None)
    assert next_allowed_view(admin) == ViewToken.ADMIN_APP


def test_every_step_has_a_view() -> None:
    assert set(ONBOARDING_STEP_VIEWS) == set(OnboardingStep)


@pytest.mark.parametrize(
    "role,status,school_id,class_ids,expected",
    [
        ("teacher", "active", None, frozenset(), ViewToken.JOIN_SCHOOL),
        ("student", "pending_verification", None, frozenset(), ViewToken.PENDING_VERIFICATION),
        ("teacher", "pending_verification", None, frozenset(), ViewToken.PENDING_VERIFICATION),
        ("teacher", "disabled", None, frozenset(), ViewToken.ACCOUNT_BLOCKED),
        ("student", "active", None, frozenset({CLASS_ID}), ViewToken.JOIN_SCHOOL),
        ("teacher", "pending_verification", SCHOOL_ID, frozenset(), ViewToken.PENDING_VERIFICATION),
        ("student", "rejected", SCHOOL_ID, frozenset(), ViewToken.ACCOUNT_BLOCKED),
        ("parent", "disabled", SCHOOL_ID, frozenset(), ViewToken.ACCOUNT_BLOCKED),
        ("student", "active", SCHOOL_ID, frozenset(), ViewToken.STUDENT_ENROLLMENT),
        ("student", "active", SCHOOL_ID, frozenset({CLASS_ID}), ViewToken.STUDENT_APP),
        ("teacher", "active", SCHOOL_ID, frozenset(), ViewToken.TEACHER_APP),
        ("parent", "active", SCHOOL_ID, frozenset(), ViewToken.PARENT_APP),
        ("ghost", "active", SCHOOL_ID, frozenset(), ViewToken.LOGIN),
    ],
)
def test_non_admin_routing(role, status, school_id, class_ids, expected) -> None:
    subject = RouteSubject(role=role, status=status, school_id=school_id, class_ids=class_ids)
    assert next_allowed_view(subject) == expected


def test_pending_check_precedes_enrollment() -> None:
    student = RouteSubject(role="student", status="pending_verification", school_id=SCHOOL_ID)
    assert next_allowed_view(student) == ViewToken.PENDING_VERIFICATION
