from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from core.config import settings
from services.timetable_store import TimetableStore
from solver.errors import TimetableConfigError
from solver.occupancy import OccupancyTracker, ResourceKind
from solver.seeding import seed_constraints
from solver.time_grid import WEEKDAYS, TimeWindow, candidate_start_minutes, resolve_operating_hours, time_to_minutes


logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 240


class SectionNotFound(LookupError):
    pass


class SubjectNotFound(LookupError):
    pass


class StaffNotFound(LookupError):
    pass


class RoomNotFound(LookupError):
    pass


class TeachingLimitExceeded(Exception):
    def __init__(self, *, limit_hours: float, projected_hours: float):
        super().__init__(
            f"Weekly teaching limit of {limit_hours:g}h would be exceeded (projected {projected_hours:.1f}h)."
        )
        self.limit_hours = limit_hours
        self.projected_hours = projected_hours


@dataclass(frozen=True)
class SuggestedSlot:
    window: TimeWindow
    room_id: uuid.UUID | None


def _check_teaching_limit(store: TimetableStore, school_id: uuid.UUID, staff, duration_minutes: int) -> None:
    limit = staff.max_weekly_teaching_hours
    if limit is None:
        return
    current = 0
    for e in store.list_entries(school_id, staff_id=staff.id):
        current += max(0, time_to_minutes(e.end_time) - time_to_minutes(e.start_time))
    projected = (current + duration_minutes) / 60
    if projected > limit:
        raise TeachingLimitExceeded(limit_hours=float(limit), projected_hours=projected)


def suggest_slot(
    store: TimetableStore,
    school_id: uuid.UUID,
    *,
    section_id: uuid.UUID,
    staff_id: uuid.UUID,
    duration_minutes: int,
    day_of_week: int | None = None,
    subject_id: uuid.UUID | None = None,
    preferred_room_id: uuid.UUID | None = None,
) -> SuggestedSlot | None:
    """First conflict-free slot for one extra session against the published timetable.

    Searches `day_of_week` only, or days 1..5 in order when no day is given. The
    section and staff member must be free; the preferred room too when one is given.
    Returns None when nothing fits.
    """

    if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
        raise ValueError(f"duration_minutes must be within {MIN_DURATION_MINUTES}..{MAX_DURATION_MINUTES}")
    if day_of_week is not None and day_of_week not in WEEKDAYS:
        raise ValueError(f"day_of_week must be one of {WEEKDAYS}")

    school = store.get_school(school_id)
    if school is None:
        raise TimetableConfigError("SCHOOL_NOT_FOUND", f"School {school_id} does not exist.")
    hours = resolve_operating_hours(school.timetable_start_time, school.timetable_end_time)

    if store.get_section(school_id, section_id) is None:
        raise SectionNotFound("SECTION_NOT_FOUND")
    if subject_id is not None and store.get_subject(school_id, subject_id) is None:
        raise SubjectNotFound("SUBJECT_NOT_FOUND")
    staff = store.get_staff(school_id, staff_id)
    if staff is None:
        raise StaffNotFound("STAFF_NOT_FOUND")
    if preferred_room_id is not None and store.get_room(school_id, preferred_room_id) is None:
        raise RoomNotFound("ROOM_NOT_FOUND")

    _check_teaching_limit(store, school_id, staff, duration_minutes)

    days = (day_of_week,) if day_of_week is not None else WEEKDAYS
    starts = candidate_start_minutes(hours.day_start, hours.day_end, duration_minutes, settings.slot_granularity_minutes)

    for day in days:
        tracker = OccupancyTracker()
        seed_constraints(tracker, entries=store.list_entries(school_id, day_of_week=day))

        for start in starts:
            window = TimeWindow(day, start, start + duration_minutes)
            if not tracker.is_free(ResourceKind.SECTION, section_id, window):
                continue
            if not tracker.is_free(ResourceKind.STAFF, staff_id, window):
                continue
            if preferred_room_id is not None and not tracker.is_free(ResourceKind.ROOM, preferred_room_id, window):
                continue
            return SuggestedSlot(window=window, room_id=preferred_room_id)

    logger.debug("No free slot for section=%s staff=%s on days %s", section_id, staff_id, days)
    return None
