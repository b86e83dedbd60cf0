from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import Any

from solver.occupancy import OccupancyTracker, ResourceKind
from solver.requirements import EligibleTeacherIndex, Requirement, RoomOption
from solver.time_grid import OperatingHours, WEEKDAYS


class DiagnosticType(str, Enum):
    NO_ELIGIBLE_TEACHER = "NO_ELIGIBLE_TEACHER"
    DURATION_EXCEEDS_DAY = "DURATION_EXCEEDS_DAY"
    ROOM_TYPE_UNAVAILABLE = "ROOM_TYPE_UNAVAILABLE"
    SECTION_SLOT_DEFICIT = "SECTION_SLOT_DEFICIT"
    STAFF_LOAD_EXCEEDS_CAPACITY = "STAFF_LOAD_EXCEEDS_CAPACITY"


def summarize_diagnostics(diagnostics: list[dict[str, Any]]) -> str:
    n = len(diagnostics)
    if n <= 0:
        return "No capacity problems detected."
    if n == 1:
        return "1 capacity problem detected; some periods may stay unplaced."
    return f"{n} capacity problems detected; some periods may stay unplaced."


def _diag(*, dtype: DiagnosticType, explanation: str, **payload: Any) -> dict[str, Any]:
    # Ids are stringified so diagnostics can go straight into the run's JSON metrics.
    payload = {k: (str(v) if k.endswith("_id") else v) for k, v in payload.items()}
    return {"type": dtype.value, **payload, "explanation": explanation}


def _free_minutes(tracker: OccupancyTracker, kind: ResourceKind, resource_id: Any, hours: OperatingHours) -> int:
    window = (hours.day_start, hours.day_end)
    return sum(hours.length - tracker.busy_minutes(kind, resource_id, day, within=window) for day in WEEKDAYS)


def analyze_capacity(
    requirements: list[Requirement],
    *,
    eligible: EligibleTeacherIndex,
    rooms: list[RoomOption],
    tracker: OccupancyTracker,
    hours: OperatingHours,
) -> list[dict[str, Any]]:
    """Pre-search demand vs. capacity checks on the seeded tracker.

    Findings are advisory: a deficit means the greedy search cannot place
    everything, the converse is not guaranteed.
    """

    diagnostics: list[dict[str, Any]] = []
    room_types = {r.room_type for r in rooms}

    demand_by_section: dict[Any, int] = defaultdict(int)
    demand_by_sole_staff: dict[Any, int] = defaultdict(int)

    for req in requirements:
        minutes = req.periods_per_week * req.duration_minutes
        demand_by_section[req.section_id] += minutes

        staff_ids = eligible.resolve(req.subject_id, req.class_id)
        if not staff_ids:
            diagnostics.append(
                _diag(
                    dtype=DiagnosticType.NO_ELIGIBLE_TEACHER,
                    explanation="No staff member is qualified for this subject and class; it will not be scheduled.",
                    section_id=req.section_id,
                    subject_id=req.subject_id,
                )
            )
        elif len(staff_ids) == 1:
            demand_by_sole_staff[staff_ids[0]] += minutes

        if req.duration_minutes > hours.length:
            diagnostics.append(
                _diag(
                    dtype=DiagnosticType.DURATION_EXCEEDS_DAY,
                    explanation="Session duration is longer than the school day.",
                    section_id=req.section_id,
                    subject_id=req.subject_id,
                    duration_minutes=req.duration_minutes,
                    day_minutes=hours.length,
                )
            )

        if req.preferred_room_type is not None and req.preferred_room_type not in room_types and None not in room_types:
            diagnostics.append(
                _diag(
                    dtype=DiagnosticType.ROOM_TYPE_UNAVAILABLE,
                    explanation=f"No room of type {req.preferred_room_type!r} (or typeless room) exists.",
                    section_id=req.section_id,
                    subject_id=req.subject_id,
                    room_type=req.preferred_room_type,
                )
            )

    for section_id, demand in demand_by_section.items():
        free = _free_minutes(tracker, ResourceKind.SECTION, section_id, hours)
        if demand > free:
            diagnostics.append(
                _diag(
                    dtype=DiagnosticType.SECTION_SLOT_DEFICIT,
                    explanation="Section needs more teaching minutes than its free weekly time.",
                    section_id=section_id,
                    required_minutes=demand,
                    available_minutes=free,
                )
            )

    for staff_id, demand in demand_by_sole_staff.items():
        free = _free_minutes(tracker, ResourceKind.STAFF, staff_id, hours)
        if demand > free:
            diagnostics.append(
                _diag(
                    dtype=DiagnosticType.STAFF_LOAD_EXCEEDS_CAPACITY,
                    explanation="Only this staff member can teach these periods and they exceed their free weekly time.",
                    staff_id=staff_id,
                    required_minutes=demand,
                    available_minutes=free,
                )
            )

    return diagnostics
