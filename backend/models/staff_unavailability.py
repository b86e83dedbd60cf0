from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Text, Time, Uuid
from sqlalchemy.sql import func

from models.base import Base


class StaffUnavailability(Base):
    __tablename__ = "staff_unavailability"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    staff_id = Column(Uuid, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week >= 1 and day_of_week <= 7", name="ck_staff_unavailability_day"),
        CheckConstraint("start_time < end_time", name="ck_staff_unavailability_order"),
    )
