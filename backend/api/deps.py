from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from services.timetable_store import TimetableStore


def get_store(db: Session = Depends(get_db)) -> TimetableStore:
    return TimetableStore(db)
