from enum import Enum, IntEnum


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


class UserStatus(str, Enum):
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    REJECTED = "rejected"
    DISABLED = "disabled"


class SchoolType(str, Enum):
    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    K12 = "K-12"
    HIGHER_EDUCATION = "Higher Education"
    VOCATIONAL = "Vocational"
    OTHER = "Other"


class ClassType(str, Enum):
    MAIN = "main"
    SUBJECT_BASED = "subject_based"


class OnboardingStep(IntEnum):
    """Admin setup wizard. A null step on the profile means setup is complete."""

    CREATE_SCHOOL = 0
    ADD_SUBJECTS = 1
    CREATE_CLASSES = 2
    INVITE_USERS = 3
    CONFIGURE_SETTINGS = 4


class ViewToken(str, Enum):
    LOGIN = "login"
    ONBOARDING_CREATE_SCHOOL = "onboarding:create-school"
    ONBOARDING_ADD_SUBJECTS = "onboarding:add-subjects"
    ONBOARDING_CREATE_CLASSES = "onboarding:create-classes"
    ONBOARDING_INVITE_USERS = "onboarding:invite-users"
    ONBOARDING_CONFIGURE_SETTINGS = "onboarding:configure-settings"
    JOIN_SCHOOL = "join-school"
    PENDING_VERIFICATION = "pending-verification"
    ACCOUNT_BLOCKED = "account-blocked"
    STUDENT_ENROLLMENT = "student:enrollment"
    ADMIN_APP = "admin:app"
    TEACHER_APP = "teacher:app"
    STUDENT_APP = "student:app"
    PARENT_APP = "parent:app"


# Invite code prefixes
SCHOOL_CODE_PREFIX = "SCH"
CLASS_CODE_PREFIX = "CLS"
