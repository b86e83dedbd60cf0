from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base


class SchoolClass(Base):
    __tablename__ = "school_classes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    school_level_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_school_classes_school_name"),
    )
