from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Text, Time, Uuid
from sqlalchemy.sql import func

from models.base import Base


class School(Base):
    __tablename__ = "schools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    # Operating hours; a school without both cannot be scheduled.
    timetable_start_time = Column(Time, nullable=True)
    timetable_end_time = Column(Time, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
