"""School: the tenant root. invite_code is the public join token; id remains the only FK target."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Uuid

from learnify.db.session import Base


class School(Base):
    __tablename__ = "schools"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # Creator admin; only this user may rename, regenerate the code or toggle exam mode
    admin_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    invite_code = Column(String(20), unique=True, nullable=False, index=True)
    school_type = Column(String(50), nullable=False)
    country = Column(String(100), nullable=False)
    phone_number = Column(String(50), nullable=True)
    logo_url = Column(String(500), nullable=True)
    setup_complete = Column(Boolean, nullable=False, default=False)
    is_exam_mode_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
