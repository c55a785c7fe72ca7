from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from learnify.core.enums import UserRole, ViewToken


class SignupRequest(BaseModel):
    email: EmailStr
    display_name: str = Field(..., min_length=2, max_length=255)
    password: str = Field(..., min_length=8)
    confirm_password: str = Field(..., min_length=8)
    role: UserRole
    # Teacher/student: optional school invite code to join at signup
    invite_code: Optional[str] = None
    # Parent: the student account this parent is linked to
    child_student_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_signup(self) -> "SignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("password and confirm_password do not match")
        if self.role == UserRole.PARENT and self.child_student_id is None:
            raise ValueError("child_student_id is required for parent registration")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID
    email: EmailStr
    display_name: str
    role: str
    status: str
    school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    onboarding_step: Optional[int] = None
    class_ids: List[UUID] = Field(default_factory=list)
    subject_ids: List[UUID] = Field(default_factory=list)
    child_student_id: Optional[UUID] = None


class SignupResponse(BaseModel):
    success: bool
    message: str
    user: UserInfo
    next_view: ViewToken


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserInfo
    next_view: ViewToken
    issued_at: datetime


class RouteResponse(BaseModel):
    view: ViewToken
    onboarding_step: Optional[int] = None


class CurrentUser(BaseModel):
    """Authenticated user as loaded at request time (never from stale token claims)."""

    id: UUID
    email: str
    display_name: str
    role: str
    status: str
    school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    onboarding_step: Optional[int] = None
