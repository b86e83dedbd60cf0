from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.sql import func

from models.base import Base


class StaffSubjectLevel(Base):
    """Qualification of a staff member for a subject.

    `class_id` NULL means "any class" and is used only when no class-specific
    qualification exists for the subject.
    """

    __tablename__ = "staff_subject_levels"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    staff_id = Column(Uuid, nullable=False)
    subject_id = Column(Uuid, nullable=False)
    class_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
