from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class TimetableEntryOut(BaseModel):
    id: uuid.UUID
    day_of_week: int
    start_time: str
    end_time: str

    section_id: uuid.UUID
    subject_id: uuid.UUID
    staff_id: uuid.UUID
    room_id: uuid.UUID | None = None

    generated_by_run_id: uuid.UUID | None = None


class TimetablePlacementOut(BaseModel):
    id: uuid.UUID
    run_id: uuid.UUID
    sequence: int
    day_of_week: int
    start_time: str
    end_time: str

    section_id: uuid.UUID
    subject_id: uuid.UUID
    staff_id: uuid.UUID
    room_id: uuid.UUID | None = None

    score: float = 1.0
    violations: int = 0


class ListEntriesResponse(BaseModel):
    entries: list[TimetableEntryOut] = Field(default_factory=list)


class ListRunPlacementsResponse(BaseModel):
    run_id: uuid.UUID
    placements: list[TimetablePlacementOut] = Field(default_factory=list)
