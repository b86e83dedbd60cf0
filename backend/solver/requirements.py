from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable


INFERRED_DURATION_MINUTES = 60
DEFAULT_WEEKLY_HOURS = 2.0


@dataclass(frozen=True)
class Requirement:
    section_id: Any
    subject_id: Any
    class_id: Any | None
    periods_per_week: int
    duration_minutes: int
    preferred_room_type: str | None = None
    inferred: bool = False


@dataclass(frozen=True)
class RoomOption:
    id: Any
    room_type: str | None


class EligibleTeacherIndex:
    """Ordered staff ids qualified per (subject, class).

    A class-specific qualification hides the wildcard ("any class") one for that
    subject/class pair; the wildcard is only a fallback.
    """

    def __init__(self) -> None:
        self._by_key: dict[tuple[Any, Any | None], list[Any]] = defaultdict(list)

    def add(self, subject_id: Any, class_id: Any | None, staff_id: Any) -> None:
        staff = self._by_key[(subject_id, class_id)]
        if staff_id not in staff:
            staff.append(staff_id)

    def resolve(self, subject_id: Any, class_id: Any | None) -> list[Any]:
        if class_id is not None:
            specific = self._by_key.get((subject_id, class_id))
            if specific:
                return list(specific)
        return list(self._by_key.get((subject_id, None), ()))

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> "EligibleTeacherIndex":
        index = cls()
        for row in rows:
            index.add(row.subject_id, row.class_id, row.staff_id)
        return index


def requirement_from_row(row: Any, *, class_id: Any | None) -> Requirement:
    return Requirement(
        section_id=row.section_id,
        subject_id=row.subject_id,
        class_id=class_id,
        periods_per_week=max(1, int(row.periods_per_week or 1)),
        duration_minutes=int(row.duration_minutes or INFERRED_DURATION_MINUTES),
        preferred_room_type=(row.preferred_room_type or None),
    )


def infer_requirements(
    curriculum: Iterable[tuple[Any, Any, Any, float | None]],
    *,
    existing: Iterable[Requirement],
) -> list[Requirement]:
    """Requirements for class-curriculum subjects a section has no explicit row for.

    `curriculum` yields (section_id, class_id, subject_id, weekly_hours).
    """

    seen = {(r.section_id, r.subject_id) for r in existing}
    inferred: list[Requirement] = []
    for section_id, class_id, subject_id, weekly_hours in curriculum:
        if (section_id, subject_id) in seen:
            continue
        seen.add((section_id, subject_id))
        hours = DEFAULT_WEEKLY_HOURS if weekly_hours is None else float(weekly_hours)
        periods = max(1, round(hours * (60 / INFERRED_DURATION_MINUTES)))
        inferred.append(
            Requirement(
                section_id=section_id,
                subject_id=subject_id,
                class_id=class_id,
                periods_per_week=periods,
                duration_minutes=INFERRED_DURATION_MINUTES,
                inferred=True,
            )
        )
    return inferred


def requested_occurrences(requirements: Iterable[Requirement]) -> int:
    return sum(r.periods_per_week for r in requirements)


def load_requirements(
    store: Any,
    school_id: Any,
    *,
    target_section_ids: list[Any] | None = None,
    auto_infer: bool = False,
) -> list[Requirement]:
    """Explicit requirements of the school (optionally a subset of sections), then inferred ones."""

    section_ids = list(target_section_ids) if target_section_ids else None
    requirements = [
        requirement_from_row(row, class_id=class_id)
        for row, class_id in store.list_requirements(school_id, section_ids=section_ids)
    ]
    if auto_infer:
        requirements.extend(
            infer_requirements(
                store.list_class_curriculum(school_id, section_ids=section_ids),
                existing=requirements,
            )
        )
    return requirements


def load_eligible_teachers(store: Any, school_id: Any) -> EligibleTeacherIndex:
    return EligibleTeacherIndex.from_rows(store.list_staff_subject_levels(school_id))
