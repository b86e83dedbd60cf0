from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from core.config import settings
from schemas.solver import GenerationOptions
from services.run_ledger import RunLedger
from services.timetable_store import TimetableStore
from solver.capacity_analyzer import analyze_capacity, summarize_diagnostics
from solver.errors import TimetableConfigError
from solver.greedy_solver import SOLVER_VERSION, SearchResult, place_requirements, verify_no_overlap
from solver.occupancy import OccupancyTracker
from solver.requirements import RoomOption, load_eligible_teachers, load_requirements
from solver.scoring import ScoredFallback
from solver.seeding import seed_from_store
from solver.time_grid import OperatingHours, format_minutes, resolve_operating_hours
from models.timetable_entry import TimetableEntry


logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    run_id: uuid.UUID
    status: str
    placed_count: int
    requested_count: int
    entries: list[TimetableEntry] = field(default_factory=list)
    diagnostics: list[dict[str, Any]] = field(default_factory=list)
    timed_out: bool = False
    metrics: dict[str, Any] = field(default_factory=dict)


def _build_fallback(store: TimetableStore, school_id: uuid.UUID, hours: OperatingHours, *, include_pinned: bool) -> ScoredFallback:
    teaching_staff = store.list_teaching_staff(school_id)
    staff_by_department: dict[Any, list[Any]] = defaultdict(list)
    for s in teaching_staff:
        if s.department_id is not None:
            staff_by_department[s.department_id].append(s.id)

    fallback = ScoredFallback(
        hours=hours,
        department_by_subject=store.subject_departments(school_id),
        staff_by_department=staff_by_department,
        teacher_pool=[s.id for s in teaching_staff],
        max_weekly_hours={s.id: s.max_weekly_teaching_hours for s in teaching_staff},
    )
    # Existing load counts toward the load and gap criteria.
    fallback.record_rows(store.list_published_entries(school_id))
    if include_pinned:
        fallback.record_rows(store.list_pinned_slots(school_id))
    return fallback


def _metrics(
    search: SearchResult,
    *,
    hours: OperatingHours,
    diagnostics: list[dict[str, Any]],
    seeded: dict[str, int],
    inferred: int,
    elapsed_ms: int,
) -> dict[str, Any]:
    def _ids(row: dict[str, Any]) -> dict[str, Any]:
        return {k: (str(v) if k.endswith("_id") else v) for k, v in row.items()}

    return {
        "placedCount": search.placed_count,
        "requestedCount": search.requested_count,
        "unplacedCount": len(search.unplaced),
        "unplaced": [_ids(u) for u in search.unplaced],
        "skippedWithoutTeacher": [_ids(s) for s in search.skipped_without_teacher],
        "fallbackPlaced": search.fallback_placed,
        "timed_out": search.timed_out,
        "inferredRequirements": inferred,
        "seeded": seeded,
        "operatingHours": {"start": format_minutes(hours.day_start), "end": format_minutes(hours.day_end)},
        "diagnostics": diagnostics,
        "diagnosticsSummary": summarize_diagnostics(diagnostics),
        "elapsedMs": elapsed_ms,
    }


def generate_timetable(
    store: TimetableStore,
    school_id: uuid.UUID,
    options: GenerationOptions | None = None,
) -> GenerationResult:
    """Run one greedy generation for a school and persist the accepted placements.

    Raises TimetableConfigError before creating any run when the school or its
    operating hours are missing. Any later failure leaves the run FAILED and
    propagates.
    """

    options = options or GenerationOptions()
    school = store.get_school(school_id)
    if school is None:
        raise TimetableConfigError("SCHOOL_NOT_FOUND", f"School {school_id} does not exist.")

    hours = resolve_operating_hours(
        school.timetable_start_time,
        school.timetable_end_time,
        preferred_start=options.preferred_start_time,
        preferred_end=options.preferred_end_time,
    )

    ledger = RunLedger(store)
    ledger.open(school_id, options=options.model_dump(mode="json"), solver_version=SOLVER_VERSION)

    started = time.monotonic()
    try:
        tracker = OccupancyTracker()
        seeded = seed_from_store(
            store,
            school_id,
            tracker,
            include_pinned=options.include_pinned,
            honor_unavailability=options.honor_unavailability,
        )

        requirements = load_requirements(
            store,
            school_id,
            target_section_ids=options.target_section_ids,
            auto_infer=options.auto_infer_requirements,
        )
        eligible = load_eligible_teachers(store, school_id)
        rooms = [RoomOption(id=r.id, room_type=(r.room_type or None)) for r in store.list_rooms(school_id)]

        diagnostics = analyze_capacity(requirements, eligible=eligible, rooms=rooms, tracker=tracker, hours=hours)
        if diagnostics:
            logger.info("School %s: %s", school_id, summarize_diagnostics(diagnostics))

        fallback = None
        if options.scored_fallback:
            fallback = _build_fallback(store, school_id, hours, include_pinned=options.include_pinned)

        budget = options.max_time_seconds or settings.max_run_seconds
        search = place_requirements(
            requirements,
            eligible=eligible,
            rooms=rooms,
            tracker=tracker,
            hours=hours,
            step=settings.slot_granularity_minutes,
            deadline=started + budget,
            fallback=fallback,
        )
        verify_no_overlap(search.placements)

        metrics = _metrics(
            search,
            hours=hours,
            diagnostics=diagnostics,
            seeded=seeded.as_dict(),
            inferred=sum(1 for r in requirements if r.inferred),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
    except Exception as exc:
        store.db.rollback()
        ledger.fail(exc)
        raise

    # commit_success marks the run FAILED itself before re-raising.
    entries = ledger.commit_success(search.placements, metrics=metrics)

    return GenerationResult(
        run_id=ledger.run_id,
        status="SUCCEEDED",
        placed_count=search.placed_count,
        requested_count=search.requested_count,
        entries=entries,
        diagnostics=diagnostics,
        timed_out=search.timed_out,
        metrics=metrics,
    )
