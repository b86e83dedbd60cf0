from __future__ import annotations

import logging
import uuid
from datetime import datetime, time, timedelta, timezone

import pytest
from _pytest.logging import LogCaptureHandler
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from core.database import get_db
from main import app
from models.base import Base
from services.timetable_store import TimetableStore


@pytest.hookimpl(hookwrapper=True, trylast=True)
def pytest_runtest_call(item):
    # pytest's logging plugin attaches capture handlers to the root logger for
    # the call phase; tests using `bare_root` need the root truly bare.
    if "bare_root" not in getattr(item, "fixturenames", ()):
        yield
        return
    root = logging.getLogger()
    captured = [h for h in root.handlers if isinstance(h, LogCaptureHandler)]
    for handler in captured:
        root.removeHandler(handler)
    try:
        yield
    finally:
        for handler in captured:
            root.addHandler(handler)


def hhmm(value: str) -> time:
    h, m = value.split(":")
    return time(int(h), int(m))


@pytest.fixture()
def engine():
    # In-memory DB shared by every session of one test.
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(db):
    return TimetableStore(db)


class SchoolFactory:
    """Builds scheduling fixtures with strictly increasing created_at values.

    Requirement and qualification order depends on created_at, and SQLite's
    CURRENT_TIMESTAMP only has one-second resolution.
    """

    def __init__(self, db):
        self.db = db
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _add(self, obj):
        obj.created_at = self._tick()
        self.db.add(obj)
        self.db.commit()
        return obj

    def school(self, start: str | None = "08:00", end: str | None = "12:00", name: str = "Test School"):
        return self._add(
            models.School(
                name=name,
                timetable_start_time=hhmm(start) if start else None,
                timetable_end_time=hhmm(end) if end else None,
            )
        )

    def school_level(self, school, name: str = "Primary"):
        return self._add(models.SchoolLevel(school_id=school.id, name=name))

    def school_class(self, school, name: str = "Grade 1", *, level=None):
        return self._add(
            models.SchoolClass(
                school_id=school.id,
                name=name,
                school_level_id=level.id if level is not None else None,
            )
        )

    def department(self, school, name: str = "Science"):
        return self._add(models.Department(school_id=school.id, name=name))

    def section(self, school, school_class=None, name: str = "A"):
        class_id = school_class.id if school_class is not None else uuid.uuid4()
        return self._add(models.Section(school_id=school.id, class_id=class_id, name=name))

    def subject(self, school, name: str = "Math", *, department=None, weekly_hours: float | None = None):
        return self._add(
            models.Subject(
                school_id=school.id,
                name=name,
                code=name[:4].upper(),
                department_id=department.id if department is not None else None,
                weekly_hours=weekly_hours,
            )
        )

    def class_subject(self, school, school_class, subject):
        return self._add(models.ClassSubject(school_id=school.id, class_id=school_class.id, subject_id=subject.id))

    def level_subject(self, school, level, subject):
        return self._add(models.SubjectSchoolLevel(school_id=school.id, school_level_id=level.id, subject_id=subject.id))

    def staff(self, school, name: str = "Teacher", *, department=None, max_weekly_hours: float | None = None, is_teacher: bool = True):
        return self._add(
            models.Staff(
                school_id=school.id,
                full_name=name,
                department_id=department.id if department is not None else None,
                max_weekly_teaching_hours=max_weekly_hours,
                is_teacher=is_teacher,
            )
        )

    def room(self, school, name: str = "R1", room_type: str | None = None):
        return self._add(models.Room(school_id=school.id, name=name, room_type=room_type))

    def qualify(self, school, staff, subject, school_class=None):
        return self._add(
            models.StaffSubjectLevel(
                school_id=school.id,
                staff_id=staff.id,
                subject_id=subject.id,
                class_id=school_class.id if school_class is not None else None,
            )
        )

    def requirement(self, school, section, subject, *, periods: int = 1, duration: int = 60, room_type: str | None = None):
        return self._add(
            models.SectionSubjectRequirement(
                school_id=school.id,
                section_id=section.id,
                subject_id=subject.id,
                periods_per_week=periods,
                duration_minutes=duration,
                preferred_room_type=room_type,
            )
        )

    def entry(self, school, section, subject, staff, *, day: int, start: str, end: str, room=None):
        return self._add(
            models.TimetableEntry(
                school_id=school.id,
                section_id=section.id,
                subject_id=subject.id,
                staff_id=staff.id,
                room_id=room.id if room is not None else None,
                day_of_week=day,
                start_time=hhmm(start),
                end_time=hhmm(end),
            )
        )

    def pinned(self, school, section, *, day: int, start: str, end: str, subject=None, staff=None, room=None):
        return self._add(
            models.PinnedTimetableSlot(
                school_id=school.id,
                section_id=section.id,
                subject_id=subject.id if subject is not None else None,
                staff_id=staff.id if staff is not None else None,
                room_id=room.id if room is not None else None,
                day_of_week=day,
                start_time=hhmm(start),
                end_time=hhmm(end),
            )
        )

    def staff_unavailable(self, school, staff, *, day: int, start: str, end: str):
        return self._add(
            models.StaffUnavailability(
                school_id=school.id,
                staff_id=staff.id,
                day_of_week=day,
                start_time=hhmm(start),
                end_time=hhmm(end),
            )
        )

    def room_unavailable(self, school, room, *, day: int, start: str, end: str):
        return self._add(
            models.RoomUnavailability(
                school_id=school.id,
                room_id=room.id,
                day_of_week=day,
                start_time=hhmm(start),
                end_time=hhmm(end),
            )
        )


@pytest.fixture()
def factory(db):
    return SchoolFactory(db)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # No `with`: the lifespan would bootstrap the configured database.
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
