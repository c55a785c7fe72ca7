from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from learnify.core.enums import ClassType


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    class_type: ClassType = ClassType.MAIN
    subject_id: Optional[UUID] = Field(None, description="Required for subject_based classes")
    # None: use the school's subjects flagged is_compulsory (main classes only)
    compulsory_subject_ids: Optional[List[UUID]] = None
    teacher_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_type_fields(self) -> "ClassCreate":
        if self.class_type == ClassType.SUBJECT_BASED:
            if self.subject_id is None:
                raise ValueError("subject_id is required for subject_based classes")
            if self.compulsory_subject_ids:
                raise ValueError("compulsory_subject_ids apply only to main classes")
        return self


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    teacher_id: Optional[UUID] = None
    subject_id: Optional[UUID] = None
    compulsory_subject_ids: Optional[List[UUID]] = None


class ClassResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    class_type: str
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    invite_code: Optional[str] = None
    compulsory_subject_ids: List[UUID] = Field(default_factory=list)
    student_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime


class ClassPreview(BaseModel):
    """What a student sees before joining with a class code."""

    id: UUID
    school_id: UUID
    name: str
    class_type: str


class ClassStudentRequest(BaseModel):
    student_id: UUID


class ClassInviteCodeResponse(BaseModel):
    class_id: UUID
    invite_code: str
