from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from learnify.api.v1.classes.schemas import ClassCreate
from learnify.api.v1.subjects.schemas import SubjectCreate
from learnify.core.enums import UserRole


class CreateSchoolResponse(BaseModel):
    school_id: UUID
    invite_code: str
    onboarding_step: int


class AddSubjectsRequest(BaseModel):
    subjects: List[SubjectCreate] = Field(default_factory=list)


class CreateClassesRequest(BaseModel):
    classes: List[ClassCreate] = Field(default_factory=list)


class InviteUserItem(BaseModel):
    email: EmailStr
    display_name: str = Field(..., min_length=2, max_length=255)
    role: UserRole = Field(..., description="teacher or student")


class InviteUsersRequest(BaseModel):
    users: List[InviteUserItem] = Field(default_factory=list)


class CompleteSetupRequest(BaseModel):
    is_exam_mode_active: bool = False


class StepResponse(BaseModel):
    success: bool = True
    message: str
    already_in_state: bool = False
    onboarding_step: Optional[int] = None


class CreatedSubject(BaseModel):
    id: UUID
    name: str
    is_compulsory: bool


class AddSubjectsResponse(StepResponse):
    subjects: List[CreatedSubject] = Field(default_factory=list)


class CreatedClass(BaseModel):
    id: UUID
    name: str
    class_type: str
    invite_code: str


class CreateClassesResponse(StepResponse):
    classes: List[CreatedClass] = Field(default_factory=list)


class InviteUsersResponse(StepResponse):
    invited: int = 0
    linked: int = 0
    unchanged: int = 0
