from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, Time, Uuid
from sqlalchemy.sql import func

from models.base import Base


class TimetablePlacement(Base):
    __tablename__ = "timetable_placements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    run_id = Column(Uuid, nullable=False)
    school_id = Column(Uuid, nullable=False, index=True)
    # Position in the run's placement order (determinism checks rely on it).
    sequence = Column(Integer, nullable=False)
    section_id = Column(Uuid, nullable=False)
    subject_id = Column(Uuid, nullable=False)
    staff_id = Column(Uuid, nullable=False)
    room_id = Column(Uuid, nullable=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    score = Column(Float, nullable=False, default=1.0)
    violations = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week >= 1 and day_of_week <= 5", name="ck_timetable_placements_day"),
        CheckConstraint("start_time < end_time", name="ck_timetable_placements_order"),
    )
