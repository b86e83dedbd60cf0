from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

from core.database import ENGINE
from models.base import Base


logger = logging.getLogger(__name__)


# Lookup paths used by seeding and requirement loading; all keyed by school.
_POSTGRES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS ix_timetable_entries_school_day ON timetable_entries (school_id, day_of_week);",
    "CREATE INDEX IF NOT EXISTS ix_pinned_slots_school_day ON pinned_timetable_slots (school_id, day_of_week);",
    "CREATE INDEX IF NOT EXISTS ix_staff_unavailability_school ON staff_unavailability (school_id, staff_id);",
    "CREATE INDEX IF NOT EXISTS ix_room_unavailability_school ON room_unavailability (school_id, room_id);",
    "CREATE INDEX IF NOT EXISTS ix_timetable_placements_run ON timetable_placements (run_id);",
]


def bootstrap_schema(engine: Engine | None = None) -> None:
    """Create missing tables (and Postgres lookup indexes).

    Idempotent: safe to run on every startup.
    """

    engine = engine or ENGINE
    # Importing the package registers every model on Base.metadata.
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    if engine.dialect.name != "postgresql":
        return

    with engine.begin() as conn:
        for stmt in _POSTGRES_INDEXES:
            conn.execute(text(stmt))
    logger.info("Schema bootstrap complete (%d lookup indexes ensured)", len(_POSTGRES_INDEXES))
