from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Enum, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base, JSON_DOCUMENT


RUN_STATUS = Enum(
    "RUNNING",
    "SUCCEEDED",
    "FAILED",
    name="timetable_run_status",
)


class TimetableRun(Base):
    __tablename__ = "timetable_runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(RUN_STATUS, nullable=False, default="RUNNING")
    solver_version = Column(Text, nullable=True)
    options_json = Column(JSON_DOCUMENT, nullable=False, default=dict)
    metrics_json = Column(JSON_DOCUMENT, nullable=False, default=dict)
    notes = Column(Text, nullable=True)
