from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base


class ClassSubject(Base):
    """Curriculum link: a subject taught to every section of a class."""

    __tablename__ = "class_subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    class_id = Column(Uuid, nullable=False)
    subject_id = Column(Uuid, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("class_id", "subject_id", name="uq_class_subjects_class_subject"),
    )
