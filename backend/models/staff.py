from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    full_name = Column(Text, nullable=False)
    department_id = Column(Uuid, nullable=True)
    is_teacher = Column(Boolean, nullable=False, default=True)
    max_weekly_teaching_hours = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "max_weekly_teaching_hours is null or max_weekly_teaching_hours >= 0",
            name="ck_staff_max_weekly_teaching_hours",
        ),
    )
