from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from learnify.core.enums import UserRole


class MemberResponse(BaseModel):
    id: UUID
    email: str
    display_name: str
    role: str
    status: str
    school_id: Optional[UUID] = None
    # False for invited users who have not registered yet
    registered: bool
    created_at: datetime


class MemberActionResponse(BaseModel):
    success: bool = True
    message: str
    already_in_state: bool = False
    member: MemberResponse


class MemberCreate(BaseModel):
    email: EmailStr
    display_name: str = Field(..., min_length=2, max_length=255)
    role: UserRole
    password: str = Field(..., min_length=8)


class MemberUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=2, max_length=255)
    role: Optional[UserRole] = None
