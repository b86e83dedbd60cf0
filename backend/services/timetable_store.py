from __future__ import annotations

import uuid
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.class_subject import ClassSubject
from models.pinned_timetable_slot import PinnedTimetableSlot
from models.room import Room
from models.room_unavailability import RoomUnavailability
from models.school import School
from models.school_class import SchoolClass
from models.section import Section
from models.section_subject_requirement import SectionSubjectRequirement
from models.staff import Staff
from models.staff_subject_level import StaffSubjectLevel
from models.staff_unavailability import StaffUnavailability
from models.subject import Subject
from models.subject_school_level import SubjectSchoolLevel
from models.timetable_entry import TimetableEntry
from models.timetable_placement import TimetablePlacement
from models.timetable_run import TimetableRun


class TimetableStore:
    """Data access used by the timetable engine, scoped per school.

    Every read is read-only; writes go through `transaction()` so a caller decides
    what is committed together.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- reads -------------------------------------------------------------

    def get_school(self, school_id: uuid.UUID) -> School | None:
        return self.db.get(School, school_id)

    def get_section(self, school_id: uuid.UUID, section_id: uuid.UUID) -> Section | None:
        return self._get_scoped(Section, school_id, section_id)

    def get_staff(self, school_id: uuid.UUID, staff_id: uuid.UUID) -> Staff | None:
        return self._get_scoped(Staff, school_id, staff_id)

    def get_room(self, school_id: uuid.UUID, room_id: uuid.UUID) -> Room | None:
        return self._get_scoped(Room, school_id, room_id)

    def get_subject(self, school_id: uuid.UUID, subject_id: uuid.UUID) -> Subject | None:
        return self._get_scoped(Subject, school_id, subject_id)

    def _get_scoped(self, model, school_id: uuid.UUID, obj_id: uuid.UUID):
        q = select(model).where(model.id == obj_id).where(model.school_id == school_id)
        return self.db.execute(q).scalars().first()

    def list_requirements(
        self,
        school_id: uuid.UUID,
        *,
        section_ids: list[uuid.UUID] | None = None,
    ) -> list[tuple[SectionSubjectRequirement, uuid.UUID]]:
        """Requirement rows with the owning section's class id, in a stable order."""

        q = (
            select(SectionSubjectRequirement, Section.class_id)
            .join(Section, Section.id == SectionSubjectRequirement.section_id)
            .where(SectionSubjectRequirement.school_id == school_id)
            .where(Section.is_active.is_(True))
        )
        if section_ids:
            q = q.where(SectionSubjectRequirement.section_id.in_(section_ids))
        q = q.order_by(Section.name.asc(), SectionSubjectRequirement.created_at.asc(), SectionSubjectRequirement.id.asc())
        return [(row, class_id) for row, class_id in self.db.execute(q).all()]

    def list_class_curriculum(
        self,
        school_id: uuid.UUID,
        *,
        section_ids: list[uuid.UUID] | None = None,
    ) -> list[tuple[uuid.UUID, uuid.UUID, uuid.UUID, float | None]]:
        """(section_id, class_id, subject_id, weekly_hours) for the curriculum of every section.

        A class with no subjects of its own falls back to the subjects of its school level.
        """

        q = (
            select(Section.id, Section.class_id, SchoolClass.school_level_id)
            .outerjoin(SchoolClass, SchoolClass.id == Section.class_id)
            .where(Section.school_id == school_id)
            .where(Section.is_active.is_(True))
        )
        if section_ids:
            q = q.where(Section.id.in_(section_ids))
        sections = self.db.execute(q.order_by(Section.name.asc(), Section.id.asc())).all()

        by_class = self._curriculum_subjects(ClassSubject, ClassSubject.class_id, school_id)
        by_level = self._curriculum_subjects(SubjectSchoolLevel, SubjectSchoolLevel.school_level_id, school_id)

        rows: list[tuple[uuid.UUID, uuid.UUID, uuid.UUID, float | None]] = []
        for section_id, class_id, level_id in sections:
            subjects = by_class.get(class_id) or by_level.get(level_id, [])
            rows.extend((section_id, class_id, subject_id, weekly_hours) for subject_id, weekly_hours in subjects)
        return rows

    def _curriculum_subjects(
        self,
        link: Any,
        key: Any,
        school_id: uuid.UUID,
    ) -> dict[uuid.UUID, list[tuple[uuid.UUID, float | None]]]:
        q = (
            select(key, Subject.id, Subject.weekly_hours)
            .join(Subject, Subject.id == link.subject_id)
            .where(link.school_id == school_id)
            .order_by(Subject.name.asc(), Subject.id.asc())
        )
        grouped: dict[uuid.UUID, list[tuple[uuid.UUID, float | None]]] = defaultdict(list)
        for owner_id, subject_id, weekly_hours in self.db.execute(q).all():
            grouped[owner_id].append((subject_id, weekly_hours))
        return grouped

    def list_staff_subject_levels(self, school_id: uuid.UUID) -> list[StaffSubjectLevel]:
        q = (
            select(StaffSubjectLevel)
            .join(Staff, Staff.id == StaffSubjectLevel.staff_id)
            .where(StaffSubjectLevel.school_id == school_id)
            .where(Staff.is_active.is_(True))
            .order_by(StaffSubjectLevel.created_at.asc(), StaffSubjectLevel.id.asc())
        )
        return list(self.db.execute(q).scalars().all())

    def list_published_entries(self, school_id: uuid.UUID) -> list[TimetableEntry]:
        q = select(TimetableEntry).where(TimetableEntry.school_id == school_id)
        return list(self.db.execute(q).scalars().all())

    def list_entries(
        self,
        school_id: uuid.UUID,
        *,
        section_id: uuid.UUID | None = None,
        staff_id: uuid.UUID | None = None,
        room_id: uuid.UUID | None = None,
        day_of_week: int | None = None,
    ) -> list[TimetableEntry]:
        q = select(TimetableEntry).where(TimetableEntry.school_id == school_id)
        if section_id is not None:
            q = q.where(TimetableEntry.section_id == section_id)
        if staff_id is not None:
            q = q.where(TimetableEntry.staff_id == staff_id)
        if room_id is not None:
            q = q.where(TimetableEntry.room_id == room_id)
        if day_of_week is not None:
            q = q.where(TimetableEntry.day_of_week == int(day_of_week))
        q = q.order_by(TimetableEntry.day_of_week.asc(), TimetableEntry.start_time.asc(), TimetableEntry.id.asc())
        return list(self.db.execute(q).scalars().all())

    def list_pinned_slots(self, school_id: uuid.UUID) -> list[PinnedTimetableSlot]:
        q = select(PinnedTimetableSlot).where(PinnedTimetableSlot.school_id == school_id)
        return list(self.db.execute(q).scalars().all())

    def list_staff_unavailability(self, school_id: uuid.UUID) -> list[StaffUnavailability]:
        q = select(StaffUnavailability).where(StaffUnavailability.school_id == school_id)
        return list(self.db.execute(q).scalars().all())

    def list_room_unavailability(self, school_id: uuid.UUID) -> list[RoomUnavailability]:
        q = select(RoomUnavailability).where(RoomUnavailability.school_id == school_id)
        return list(self.db.execute(q).scalars().all())

    def list_rooms(self, school_id: uuid.UUID) -> list[Room]:
        q = (
            select(Room)
            .where(Room.school_id == school_id)
            .where(Room.is_active.is_(True))
            .order_by(Room.name.asc(), Room.id.asc())
        )
        return list(self.db.execute(q).scalars().all())

    def list_teaching_staff(self, school_id: uuid.UUID) -> list[Staff]:
        q = (
            select(Staff)
            .where(Staff.school_id == school_id)
            .where(Staff.is_active.is_(True))
            .where(Staff.is_teacher.is_(True))
            .order_by(Staff.full_name.asc(), Staff.id.asc())
        )
        return list(self.db.execute(q).scalars().all())

    def subject_departments(self, school_id: uuid.UUID) -> dict[uuid.UUID, uuid.UUID]:
        q = (
            select(Subject.id, Subject.department_id)
            .where(Subject.school_id == school_id)
            .where(Subject.department_id.is_not(None))
        )
        return {subject_id: dept_id for subject_id, dept_id in self.db.execute(q).all()}

    def list_runs(self, school_id: uuid.UUID, *, limit: int = 50) -> list[TimetableRun]:
        q = (
            select(TimetableRun)
            .where(TimetableRun.school_id == school_id)
            .order_by(TimetableRun.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(q).scalars().all())

    def get_run(self, school_id: uuid.UUID, run_id: uuid.UUID) -> TimetableRun | None:
        return self._get_scoped(TimetableRun, school_id, run_id)

    def list_run_placements(self, run_id: uuid.UUID) -> list[TimetablePlacement]:
        q = (
            select(TimetablePlacement)
            .where(TimetablePlacement.run_id == run_id)
            .order_by(TimetablePlacement.sequence.asc())
        )
        return list(self.db.execute(q).scalars().all())

    # --- writes ------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit everything written inside the block, or nothing."""

        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def create_run(self, school_id: uuid.UUID, *, options: dict[str, Any], solver_version: str) -> TimetableRun:
        run = TimetableRun(
            school_id=school_id,
            status="RUNNING",
            solver_version=solver_version,
            options_json=options,
            metrics_json={},
        )
        with self.transaction() as db:
            db.add(run)
        return run

    def add_placements(self, rows: list[TimetablePlacement]) -> None:
        self.db.add_all(rows)

    def add_entries(self, rows: list[TimetableEntry]) -> None:
        self.db.add_all(rows)

    def finish_run(self, run: TimetableRun, *, status: str, metrics: dict[str, Any] | None = None, notes: str | None = None) -> None:
        run.status = status
        run.finished_at = datetime.now(timezone.utc)
        if metrics is not None:
            run.metrics_json = metrics
        if notes is not None:
            run.notes = notes[:500]
        self.db.add(run)
