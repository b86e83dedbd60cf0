from __future__ import annotations

from collections import defaultdict
from math import ceil
from typing import Any, Iterable

from solver.requirements import Requirement
from solver.time_grid import OperatingHours, TimeWindow, WEEKDAYS


# Weights of the soft criteria; they sum to 1.0.
W_TEACHER_LOAD = 0.35
W_GAP = 0.2
W_TIME_OF_DAY = 0.25
W_SPREAD = 0.15
W_ROOM = 0.05

MAX_GAP_MINUTES = 180


class ScoredFallback:
    """Extended-pool placement for requirements nobody is qualified for.

    Candidates are the subject department's staff, else every teaching staff
    member, lighter weekly load first. Each feasible slot is scored on soft
    criteria and the best one wins.
    """

    def __init__(
        self,
        *,
        hours: OperatingHours,
        department_by_subject: dict[Any, Any] | None = None,
        staff_by_department: dict[Any, list[Any]] | None = None,
        teacher_pool: list[Any] | None = None,
        max_weekly_hours: dict[Any, float | None] | None = None,
    ) -> None:
        self.hours = hours
        self.department_by_subject = dict(department_by_subject or {})
        self.staff_by_department = {k: list(v) for k, v in (staff_by_department or {}).items()}
        self.teacher_pool = list(teacher_pool or [])
        self.max_weekly_hours = dict(max_weekly_hours or {})

        self._staff_minutes: dict[Any, int] = defaultdict(int)
        self._section_day: dict[tuple[Any, int], list[tuple[int, int]]] = defaultdict(list)
        self._section_subject_day: dict[tuple[Any, Any, int], int] = defaultdict(int)

    def record(self, *, section_id: Any, subject_id: Any | None, staff_id: Any | None, window: TimeWindow) -> None:
        """Account a teaching session (published, pinned or newly placed)."""

        if staff_id is not None:
            self._staff_minutes[staff_id] += window.duration
        self._section_day[(section_id, window.day_of_week)].append((window.start_minute, window.end_minute))
        if subject_id is not None:
            self._section_subject_day[(section_id, subject_id, window.day_of_week)] += 1

    def record_rows(self, rows: Iterable[Any]) -> None:
        for row in rows:
            try:
                window = TimeWindow.from_times(row.day_of_week, row.start_time, row.end_time)
            except ValueError:
                # Already reported by the seeder.
                continue
            self.record(
                section_id=row.section_id,
                subject_id=getattr(row, "subject_id", None),
                staff_id=getattr(row, "staff_id", None),
                window=window,
            )

    def candidates(self, requirement: Requirement) -> list[Any]:
        dept_id = self.department_by_subject.get(requirement.subject_id)
        pool = list(self.staff_by_department.get(dept_id, ())) if dept_id is not None else []
        if not pool:
            pool = list(self.teacher_pool)
        if not pool:
            return []
        # sorted() is stable, so equal loads keep the pool order.
        ranked = sorted(pool, key=lambda staff_id: self._staff_minutes.get(staff_id, 0))
        keep = max(3, ceil(len(ranked) * 0.3))
        return ranked[:keep]

    def _nearest_gap(self, section_id: Any, window: TimeWindow) -> int:
        sessions = self._section_day.get((section_id, window.day_of_week))
        if not sessions:
            return 0
        best: int | None = None
        for s, e in sessions:
            if window.end_minute <= s:
                gap = s - window.end_minute
            elif e <= window.start_minute:
                gap = window.start_minute - e
            else:
                return 0
            best = gap if best is None else min(best, gap)
        return best or 0

    def score(self, requirement: Requirement, staff_id: Any, window: TimeWindow) -> float:
        projected = self._staff_minutes.get(staff_id, 0) + window.duration
        max_hours = self.max_weekly_hours.get(staff_id) or 0
        if max_hours > 0:
            load_ratio = min(1.0, projected / (max_hours * 60))
        else:
            load_ratio = min(1.0, projected / (len(WEEKDAYS) * self.hours.length))
        teacher_load_score = 1 - load_ratio

        gap = self._nearest_gap(requirement.section_id, window)
        gap_score = 0.8 if gap == 0 else max(0.2, 1 - min(gap, MAX_GAP_MINUTES) / MAX_GAP_MINUTES)

        mid = (self.hours.day_start + self.hours.day_end) / 2
        half_day = self.hours.length / 2
        time_of_day_score = 1 - abs((window.start_minute + window.end_minute) / 2 - mid) / half_day

        already = self._section_subject_day.get((requirement.section_id, requirement.subject_id, window.day_of_week), 0)
        spread_score = 1 - min(already, 2) * 0.3

        room_score = 1.0 if requirement.preferred_room_type else 0.8

        return (
            W_TEACHER_LOAD * teacher_load_score
            + W_GAP * gap_score
            + W_TIME_OF_DAY * time_of_day_score
            + W_SPREAD * spread_score
            + W_ROOM * room_score
        )
