from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import OperationalError as SAOperationalError

from api.deps import get_store
from core.database import DatabaseUnavailableError, is_transient_db_connectivity_error
from schemas.solver import (
    GenerateTimetableResponse,
    GenerationOptions,
    ListRunsResponse,
    RunDetail,
    RunSummary,
    SuggestedSlotOut,
    SuggestSlotRequest,
    SuggestSlotResponse,
)
from schemas.timetable import ListEntriesResponse, ListRunPlacementsResponse, TimetableEntryOut, TimetablePlacementOut
from services.slot_suggestion import TeachingLimitExceeded, suggest_slot
from services.timetable_generation import generate_timetable
from services.timetable_store import TimetableStore
from solver.capacity_analyzer import summarize_diagnostics
from solver.errors import SolverInvariantError, TimetableConfigError
from solver.time_grid import format_minutes, time_to_minutes


logger = logging.getLogger(__name__)

router = APIRouter()


def _hhmm(value) -> str:
    return format_minutes(time_to_minutes(value))


def _entry_out(e) -> TimetableEntryOut:
    return TimetableEntryOut(
        id=e.id,
        day_of_week=int(e.day_of_week),
        start_time=_hhmm(e.start_time),
        end_time=_hhmm(e.end_time),
        section_id=e.section_id,
        subject_id=e.subject_id,
        staff_id=e.staff_id,
        room_id=e.room_id,
        generated_by_run_id=e.generated_by_run_id,
    )


def _run_summary(r) -> RunSummary:
    return RunSummary(
        id=r.id,
        created_at=r.created_at,
        finished_at=r.finished_at,
        status=str(r.status),
        solver_version=r.solver_version,
        options=r.options_json or {},
        notes=r.notes,
    )


@router.post("/generate", response_model=GenerateTimetableResponse)
def generate(
    school_id: uuid.UUID,
    payload: GenerationOptions,
    store: TimetableStore = Depends(get_store),
) -> GenerateTimetableResponse:
    # TimetableConfigError and SolverInvariantError are mapped by the app's exception handlers.
    try:
        result = generate_timetable(store, school_id, payload)
    except (DatabaseUnavailableError, TimetableConfigError, SolverInvariantError):
        raise
    except SAOperationalError as exc:
        if is_transient_db_connectivity_error(exc):
            raise DatabaseUnavailableError("Database temporarily unavailable") from exc
        raise _generation_failed(exc)
    except Exception as exc:
        raise _generation_failed(exc)

    return GenerateTimetableResponse(
        run_id=result.run_id,
        status="SUCCEEDED",
        placed_count=result.placed_count,
        requested_count=result.requested_count,
        entries_written=len(result.entries),
        timed_out=result.timed_out,
        diagnostics=result.diagnostics,
        reason_summary=summarize_diagnostics(result.diagnostics),
    )


def _generation_failed(exc: Exception) -> HTTPException:
    run_id = getattr(exc, "run_id", None)
    logger.exception("Timetable generation failed (run %s)", run_id)
    return HTTPException(
        status_code=500,
        detail={
            "error": "GENERATION_FAILED",
            "message": "Timetable generation failed; no entries were saved.",
            "run_id": str(run_id) if run_id is not None else None,
        },
    )


@router.post("/suggest", response_model=SuggestSlotResponse)
def suggest(
    school_id: uuid.UUID,
    payload: SuggestSlotRequest,
    store: TimetableStore = Depends(get_store),
) -> SuggestSlotResponse:
    try:
        slot = suggest_slot(
            store,
            school_id,
            section_id=payload.section_id,
            staff_id=payload.staff_id,
            subject_id=payload.subject_id,
            day_of_week=payload.day_of_week,
            duration_minutes=payload.duration_minutes,
            preferred_room_id=payload.preferred_room_id,
        )
    except LookupError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except TeachingLimitExceeded as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    if slot is None:
        raise HTTPException(status_code=404, detail="NO_SLOT_FOUND")

    return SuggestSlotResponse(
        suggested_slot=SuggestedSlotOut(
            day_of_week=slot.window.day_of_week,
            start_time=format_minutes(slot.window.start_minute),
            end_time=format_minutes(slot.window.end_minute),
            room_id=slot.room_id,
        )
    )


@router.get("/runs", response_model=ListRunsResponse)
def list_runs(
    school_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=200),
    store: TimetableStore = Depends(get_store),
) -> ListRunsResponse:
    return ListRunsResponse(runs=[_run_summary(r) for r in store.list_runs(school_id, limit=limit)])


@router.get("/runs/{run_id}", response_model=RunDetail)
def get_run(
    school_id: uuid.UUID,
    run_id: uuid.UUID,
    store: TimetableStore = Depends(get_store),
) -> RunDetail:
    run = store.get_run(school_id, run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="RUN_NOT_FOUND")

    summary = _run_summary(run)
    return RunDetail(
        **summary.model_dump(),
        metrics=run.metrics_json or {},
        placements_total=len(store.list_run_placements(run.id)),
    )


@router.get("/runs/{run_id}/placements", response_model=ListRunPlacementsResponse)
def list_run_placements(
    school_id: uuid.UUID,
    run_id: uuid.UUID,
    store: TimetableStore = Depends(get_store),
) -> ListRunPlacementsResponse:
    if store.get_run(school_id, run_id) is None:
        raise HTTPException(status_code=404, detail="RUN_NOT_FOUND")

    return ListRunPlacementsResponse(
        run_id=run_id,
        placements=[
            TimetablePlacementOut(
                id=p.id,
                run_id=p.run_id,
                sequence=p.sequence,
                day_of_week=int(p.day_of_week),
                start_time=_hhmm(p.start_time),
                end_time=_hhmm(p.end_time),
                section_id=p.section_id,
                subject_id=p.subject_id,
                staff_id=p.staff_id,
                room_id=p.room_id,
                score=float(p.score),
                violations=int(p.violations),
            )
            for p in store.list_run_placements(run_id)
        ],
    )


@router.get("/entries", response_model=ListEntriesResponse)
def list_entries(
    school_id: uuid.UUID,
    section_id: uuid.UUID | None = Query(default=None),
    staff_id: uuid.UUID | None = Query(default=None),
    room_id: uuid.UUID | None = Query(default=None),
    day_of_week: int | None = Query(default=None, ge=1, le=5),
    store: TimetableStore = Depends(get_store),
) -> ListEntriesResponse:
    rows = store.list_entries(
        school_id,
        section_id=section_id,
        staff_id=staff_id,
        room_id=room_id,
        day_of_week=day_of_week,
    )
    return ListEntriesResponse(entries=[_entry_out(e) for e in rows])
