from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from solver.occupancy import OccupancyTracker, ResourceKind
from solver.time_grid import TimeWindow


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedSummary:
    entries: int = 0
    pinned: int = 0
    staff_unavailability: int = 0
    room_unavailability: int = 0
    # Rows with an empty or inverted time range; they block nothing.
    invalid: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "entries": self.entries,
            "pinned": self.pinned,
            "staff_unavailability": self.staff_unavailability,
            "room_unavailability": self.room_unavailability,
            "invalid": self.invalid,
        }


class _InvalidRows:
    def __init__(self) -> None:
        self.count = 0

    def windows(self, rows: Iterable[Any], source: str) -> Iterator[tuple[Any, TimeWindow]]:
        for row in rows:
            try:
                window = TimeWindow.from_times(row.day_of_week, row.start_time, row.end_time)
            except ValueError as exc:
                self.count += 1
                logger.warning("Ignoring %s row %s: %s", source, getattr(row, "id", None), exc)
                continue
            yield row, window


def seed_constraints(
    tracker: OccupancyTracker,
    *,
    entries: Iterable[Any] = (),
    pinned: Iterable[Any] = (),
    staff_unavailability: Iterable[Any] = (),
    room_unavailability: Iterable[Any] = (),
) -> SeedSummary:
    """Reserve every immovable constraint on the tracker.

    Published entries and pinned slots block their section plus any staff/room they
    carry; an unavailability window blocks only its one resource. A row whose start
    is not before its end is logged and skipped.
    """

    invalid = _InvalidRows()

    n_entries = 0
    for e, w in invalid.windows(entries, "timetable entry"):
        tracker.reserve(ResourceKind.SECTION, e.section_id, w)
        tracker.reserve(ResourceKind.STAFF, e.staff_id, w)
        if e.room_id is not None:
            tracker.reserve(ResourceKind.ROOM, e.room_id, w)
        n_entries += 1

    n_pinned = 0
    for p, w in invalid.windows(pinned, "pinned slot"):
        tracker.reserve(ResourceKind.SECTION, p.section_id, w)
        if p.staff_id is not None:
            tracker.reserve(ResourceKind.STAFF, p.staff_id, w)
        if p.room_id is not None:
            tracker.reserve(ResourceKind.ROOM, p.room_id, w)
        n_pinned += 1

    n_staff = 0
    for u, w in invalid.windows(staff_unavailability, "staff unavailability"):
        tracker.reserve(ResourceKind.STAFF, u.staff_id, w)
        n_staff += 1

    n_room = 0
    for u, w in invalid.windows(room_unavailability, "room unavailability"):
        tracker.reserve(ResourceKind.ROOM, u.room_id, w)
        n_room += 1

    return SeedSummary(
        entries=n_entries,
        pinned=n_pinned,
        staff_unavailability=n_staff,
        room_unavailability=n_room,
        invalid=invalid.count,
    )


def seed_from_store(
    store: Any,
    school_id: Any,
    tracker: OccupancyTracker,
    *,
    include_pinned: bool = True,
    honor_unavailability: bool = True,
) -> SeedSummary:
    summary = seed_constraints(
        tracker,
        entries=store.list_published_entries(school_id),
        pinned=store.list_pinned_slots(school_id) if include_pinned else (),
        staff_unavailability=store.list_staff_unavailability(school_id) if honor_unavailability else (),
        room_unavailability=store.list_room_unavailability(school_id) if honor_unavailability else (),
    )
    logger.debug("Seeded constraints for school %s: %s", school_id, summary.as_dict())
    return summary
