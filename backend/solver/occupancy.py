from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import Hashable

from solver.time_grid import TimeWindow


class ResourceKind(str, Enum):
    SECTION = "SECTION"
    STAFF = "STAFF"
    ROOM = "ROOM"


class OccupancyTracker:
    """Committed [start, end) intervals per (resource kind, resource id, weekday).

    Intervals are only ever appended; a run never releases a reservation.
    Not safe for concurrent writers: one tracker per run.
    """

    def __init__(self) -> None:
        self._intervals: dict[tuple[ResourceKind, Hashable, int], list[tuple[int, int]]] = defaultdict(list)

    def reserve(self, kind: ResourceKind, resource_id: Hashable, window: TimeWindow) -> None:
        self._intervals[(kind, resource_id, window.day_of_week)].append((window.start_minute, window.end_minute))

    def is_free(self, kind: ResourceKind, resource_id: Hashable, window: TimeWindow) -> bool:
        taken = self._intervals.get((kind, resource_id, window.day_of_week))
        if not taken:
            return True
        s, e = window.start_minute, window.end_minute
        return all(end <= s or e <= start for start, end in taken)

    def intervals(self, kind: ResourceKind, resource_id: Hashable, day_of_week: int) -> list[tuple[int, int]]:
        return list(self._intervals.get((kind, resource_id, day_of_week), ()))

    def busy_minutes(self, kind: ResourceKind, resource_id: Hashable, day_of_week: int, *, within: tuple[int, int]) -> int:
        """Minutes of [within) covered by at least one reservation (overlaps counted once)."""

        lo, hi = within
        clipped = sorted(
            (max(start, lo), min(end, hi))
            for start, end in self._intervals.get((kind, resource_id, day_of_week), ())
            if end > lo and start < hi
        )
        total = 0
        cur_start: int | None = None
        cur_end = 0
        for start, end in clipped:
            if cur_start is None or start > cur_end:
                if cur_start is not None:
                    total += cur_end - cur_start
                cur_start, cur_end = start, end
            else:
                cur_end = max(cur_end, end)
        if cur_start is not None:
            total += cur_end - cur_start
        return total
