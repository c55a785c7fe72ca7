from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class SelectClassRequest(BaseModel):
    class_id: UUID


class ClassSelectionResponse(BaseModel):
    class_id: UUID
    class_type: str
    compulsory_subject_ids: List[UUID] = Field(default_factory=list)
    available_subject_ids: List[UUID] = Field(default_factory=list)


class ToggleSubjectRequest(BaseModel):
    class_id: UUID
    selected_subject_ids: List[UUID] = Field(default_factory=list)
    subject_id: UUID


class ToggleSubjectResponse(BaseModel):
    selected_subject_ids: List[UUID]
    compulsory_subject_ids: List[UUID]
    changed: bool


class CompleteEnrollmentRequest(BaseModel):
    class_id: UUID
    subject_ids: List[UUID] = Field(default_factory=list)


class JoinClassRequest(BaseModel):
    code: str = Field(..., min_length=1)


class EnrollmentResponse(BaseModel):
    success: bool = True
    message: str
    already_in_state: bool = False
    class_ids: List[UUID] = Field(default_factory=list)
    subject_ids: List[UUID] = Field(default_factory=list)
