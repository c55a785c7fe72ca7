from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from learnify.core.enums import SchoolType


class SchoolCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    school_type: SchoolType
    country: str = Field(..., min_length=2, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=5, max_length=50)
    logo_url: Optional[str] = Field(None, max_length=500, description="Reference to a stored logo")


class SchoolUpdate(BaseModel):
    """Settings update. name and is_exam_mode_active are reserved to the creator admin."""

    name: Optional[str] = Field(None, min_length=3, max_length=255)
    school_type: Optional[SchoolType] = None
    country: Optional[str] = Field(None, min_length=2, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=5, max_length=50)
    logo_url: Optional[str] = Field(None, max_length=500)
    is_exam_mode_active: Optional[bool] = None


class SchoolResponse(BaseModel):
    id: UUID
    name: str
    admin_id: UUID
    invite_code: str
    school_type: str
    country: str
    phone_number: Optional[str] = None
    logo_url: Optional[str] = None
    setup_complete: bool
    is_exam_mode_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class SchoolPreview(BaseModel):
    id: UUID
    name: str
    school_type: str
    country: str


class SchoolInviteCodeResponse(BaseModel):
    school_id: UUID
    invite_code: str


class JoinSchoolRequest(BaseModel):
    code: str = Field(..., min_length=1)


class JoinSchoolResponse(BaseModel):
    success: bool = True
    message: str
    already_in_state: bool = False
    school_id: UUID
    school_name: str
    status: str


class ActivityItem(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    action: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    performed_by: Optional[UUID] = None
    performed_by_role: Optional[str] = None
    message: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True
