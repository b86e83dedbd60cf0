from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable

from solver.errors import SolverInvariantError
from solver.occupancy import OccupancyTracker, ResourceKind
from solver.requirements import EligibleTeacherIndex, Requirement, RoomOption, requested_occurrences
from solver.scoring import ScoredFallback
from solver.time_grid import DEFAULT_STEP_MINUTES, OperatingHours, TimeWindow, WEEKDAYS, candidate_start_minutes


logger = logging.getLogger(__name__)

SOLVER_VERSION = "greedy-first-fit-v1"


@dataclass(frozen=True)
class ProposedPlacement:
    section_id: Any
    subject_id: Any
    staff_id: Any
    room_id: Any | None
    window: TimeWindow
    score: float = 1.0
    violations: int = 0


@dataclass
class SearchResult:
    placements: list[ProposedPlacement] = field(default_factory=list)
    requested_count: int = 0
    unplaced: list[dict[str, Any]] = field(default_factory=list)
    skipped_without_teacher: list[dict[str, Any]] = field(default_factory=list)
    fallback_placed: int = 0
    timed_out: bool = False

    @property
    def placed_count(self) -> int:
        return len(self.placements)


def select_room(
    requirement: Requirement,
    rooms: Iterable[RoomOption],
    tracker: OccupancyTracker,
    window: TimeWindow,
) -> tuple[bool, Any | None]:
    """Return (ok, room_id) for one candidate window."""

    if requirement.preferred_room_type is None:
        # No room constraint: the occurrence is placed without a room.
        return True, None

    for room in rooms:
        if room.room_type is not None and room.room_type != requirement.preferred_room_type:
            continue
        # Matching type, or a typeless room that can host anything.
        if tracker.is_free(ResourceKind.ROOM, room.id, window):
            return True, room.id
    return False, None


def _first_fit(
    requirement: Requirement,
    staff_ids: list[Any],
    starts: list[int],
    rooms: list[RoomOption],
    tracker: OccupancyTracker,
    days: Iterable[int] = WEEKDAYS,
) -> ProposedPlacement | None:
    for day in days:
        for start in starts:
            window = TimeWindow(day, start, start + requirement.duration_minutes)
            if not tracker.is_free(ResourceKind.SECTION, requirement.section_id, window):
                continue
            for staff_id in staff_ids:
                if not tracker.is_free(ResourceKind.STAFF, staff_id, window):
                    continue
                ok, room_id = select_room(requirement, rooms, tracker, window)
                if not ok:
                    continue
                return ProposedPlacement(
                    section_id=requirement.section_id,
                    subject_id=requirement.subject_id,
                    staff_id=staff_id,
                    room_id=room_id,
                    window=window,
                )
    return None


def _best_scored(
    requirement: Requirement,
    starts: list[int],
    rooms: list[RoomOption],
    tracker: OccupancyTracker,
    fallback: ScoredFallback,
) -> ProposedPlacement | None:
    candidates = fallback.candidates(requirement)
    if not candidates:
        return None

    best: ProposedPlacement | None = None
    best_score = 0.0
    for day in WEEKDAYS:
        for start in starts:
            window = TimeWindow(day, start, start + requirement.duration_minutes)
            if not tracker.is_free(ResourceKind.SECTION, requirement.section_id, window):
                continue
            ok, room_id = select_room(requirement, rooms, tracker, window)
            if not ok:
                continue
            for staff_id in candidates:
                if not tracker.is_free(ResourceKind.STAFF, staff_id, window):
                    continue
                score = fallback.score(requirement, staff_id, window)
                # Compare unrounded scores; ties keep the first candidate.
                if best is None or score > best_score:
                    best_score = score
                    best = ProposedPlacement(
                        section_id=requirement.section_id,
                        subject_id=requirement.subject_id,
                        staff_id=staff_id,
                        room_id=room_id,
                        window=window,
                        score=round(score, 4),
                    )
    return best


def _commit(tracker: OccupancyTracker, placement: ProposedPlacement) -> None:
    tracker.reserve(ResourceKind.SECTION, placement.section_id, placement.window)
    tracker.reserve(ResourceKind.STAFF, placement.staff_id, placement.window)
    if placement.room_id is not None:
        tracker.reserve(ResourceKind.ROOM, placement.room_id, placement.window)


def _record_timed_out(
    result: SearchResult,
    current: Requirement,
    first_occurrence: int,
    rest: list[Requirement],
) -> None:
    pending = [(current, range(first_occurrence, current.periods_per_week))]
    pending.extend((r, range(r.periods_per_week)) for r in rest)
    for requirement, occurrences in pending:
        for occurrence in occurrences:
            result.unplaced.append(
                {
                    "section_id": requirement.section_id,
                    "subject_id": requirement.subject_id,
                    "occurrence": occurrence + 1,
                    "timed_out": True,
                }
            )


def place_requirements(
    requirements: list[Requirement],
    *,
    eligible: EligibleTeacherIndex,
    rooms: list[RoomOption],
    tracker: OccupancyTracker,
    hours: OperatingHours,
    step: int = DEFAULT_STEP_MINUTES,
    deadline: float | None = None,
    fallback: ScoredFallback | None = None,
) -> SearchResult:
    """Deterministic first-fit placement of every required occurrence.

    Requirements are processed in the given order, each occurrence scanning days
    1..5, start times ascending, then eligible staff in index order. Days that
    already hold an occurrence of the same requirement are only scanned once no
    other day fits, so weekly periods spread one per day. A committed occurrence
    is never revisited. `deadline` is a `time.monotonic()` value after
    which every remaining occurrence is recorded as unplaced with `timed_out`.
    """

    result = SearchResult(requested_count=requested_occurrences(requirements))

    for index, requirement in enumerate(requirements):
        staff_ids = eligible.resolve(requirement.subject_id, requirement.class_id)
        if not staff_ids and fallback is None:
            result.skipped_without_teacher.append(
                {"section_id": requirement.section_id, "subject_id": requirement.subject_id}
            )
            continue

        starts = candidate_start_minutes(hours.day_start, hours.day_end, requirement.duration_minutes, step)
        used_days: set[int] = set()

        for occurrence in range(requirement.periods_per_week):
            if deadline is not None and time.monotonic() > deadline:
                result.timed_out = True
                _record_timed_out(result, requirement, occurrence, requirements[index + 1 :])
                logger.warning(
                    "Placement search hit its time budget after %d placements (%d left unplaced)",
                    result.placed_count,
                    len(result.unplaced),
                )
                return result

            placement = None
            if staff_ids:
                # Days without an occurrence of this requirement first, then any day.
                fresh_days = [d for d in WEEKDAYS if d not in used_days]
                placement = _first_fit(requirement, staff_ids, starts, rooms, tracker, fresh_days)
                if placement is None and len(fresh_days) < len(WEEKDAYS):
                    placement = _first_fit(requirement, staff_ids, starts, rooms, tracker)
            if placement is None and not staff_ids and fallback is not None:
                placement = _best_scored(requirement, starts, rooms, tracker, fallback)
                if placement is not None:
                    result.fallback_placed += 1

            if placement is None:
                result.unplaced.append(
                    {
                        "section_id": requirement.section_id,
                        "subject_id": requirement.subject_id,
                        "occurrence": occurrence + 1,
                    }
                )
                logger.debug(
                    "No feasible slot for section=%s subject=%s occurrence=%d",
                    requirement.section_id,
                    requirement.subject_id,
                    occurrence + 1,
                )
                continue

            _commit(tracker, placement)
            used_days.add(placement.window.day_of_week)
            if fallback is not None:
                fallback.record(
                    section_id=placement.section_id,
                    subject_id=placement.subject_id,
                    staff_id=placement.staff_id,
                    window=placement.window,
                )
            result.placements.append(placement)

    return result


def verify_no_overlap(placements: Iterable[ProposedPlacement]) -> None:
    """Raise SolverInvariantError if two placements double-book a section, staff member or room."""

    by_key: dict[tuple[ResourceKind, Any, int], list[ProposedPlacement]] = defaultdict(list)
    for p in placements:
        keys = [(ResourceKind.SECTION, p.section_id), (ResourceKind.STAFF, p.staff_id)]
        if p.room_id is not None:
            keys.append((ResourceKind.ROOM, p.room_id))
        for kind, rid in keys:
            bucket = by_key[(kind, rid, p.window.day_of_week)]
            for other in bucket:
                if other.window.overlaps(p.window):
                    raise SolverInvariantError(
                        "DOUBLE_BOOKING",
                        f"{kind.value} {rid} is double-booked on day {p.window.day_of_week}.",
                        details={
                            "resource_kind": kind.value,
                            "resource_id": str(rid),
                            "day_of_week": p.window.day_of_week,
                            "windows": [
                                [other.window.start_minute, other.window.end_minute],
                                [p.window.start_minute, p.window.end_minute],
                            ],
                        },
                    )
            bucket.append(p)
