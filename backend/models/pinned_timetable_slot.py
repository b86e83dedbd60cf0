from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Text, Time, Uuid
from sqlalchemy.sql import func

from models.base import Base


class PinnedTimetableSlot(Base):
    __tablename__ = "pinned_timetable_slots"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    section_id = Column(Uuid, nullable=False)
    subject_id = Column(Uuid, nullable=True)
    staff_id = Column(Uuid, nullable=True)
    room_id = Column(Uuid, nullable=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week >= 1 and day_of_week <= 7", name="ck_pinned_slots_day"),
        CheckConstraint("start_time < end_time", name="ck_pinned_slots_order"),
    )
