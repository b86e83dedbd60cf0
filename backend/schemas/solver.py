from __future__ import annotations

from datetime import datetime
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


HHMM_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"


class GenerationOptions(BaseModel):
    """Options of one generation run; also the request body of POST /generate."""

    target_section_ids: list[uuid.UUID] | None = None
    # Per-run override of the school's operating hours, each side independent.
    preferred_start_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    preferred_end_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    include_pinned: bool = True
    honor_unavailability: bool = True

    auto_infer_requirements: bool = False
    scored_fallback: bool = False
    max_time_seconds: float | None = Field(default=None, gt=0)


class Diagnostic(BaseModel):
    # Type-specific keys (required/available minutes, durations, room type) pass through.
    model_config = ConfigDict(extra="allow")

    type: str
    explanation: str
    section_id: str | None = None
    subject_id: str | None = None
    staff_id: str | None = None


class GenerateTimetableResponse(BaseModel):
    run_id: uuid.UUID
    status: Literal["SUCCEEDED", "FAILED"]
    placed_count: int
    requested_count: int
    entries_written: int = 0
    timed_out: bool = False
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    reason_summary: str | None = None


class SuggestSlotRequest(BaseModel):
    section_id: uuid.UUID
    staff_id: uuid.UUID
    subject_id: uuid.UUID | None = None
    day_of_week: int | None = Field(default=None, ge=1, le=5)
    duration_minutes: int = Field(ge=15, le=240)
    preferred_room_id: uuid.UUID | None = None


class SuggestedSlotOut(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str
    room_id: uuid.UUID | None = None


class SuggestSlotResponse(BaseModel):
    suggested_slot: SuggestedSlotOut
    message: str = "Found a conflict-free slot."


class RunSummary(BaseModel):
    id: uuid.UUID
    created_at: datetime
    finished_at: datetime | None = None
    status: str
    solver_version: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = None


class RunDetail(RunSummary):
    metrics: dict[str, Any] = Field(default_factory=dict)
    placements_total: int = 0


class ListRunsResponse(BaseModel):
    runs: list[RunSummary] = Field(default_factory=list)
