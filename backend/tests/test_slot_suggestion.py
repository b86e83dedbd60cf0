import uuid
from datetime import time
from types import SimpleNamespace

import pytest

from services.slot_suggestion import (
    RoomNotFound,
    SectionNotFound,
    StaffNotFound,
    TeachingLimitExceeded,
    suggest_slot,
)
from solver.errors import TimetableConfigError


@pytest.fixture()
def setup(factory):
    school = factory.school("08:00", "10:00")
    section = factory.section(school, name="A")
    subject = factory.subject(school, "Math")
    teacher = factory.staff(school, "Ada")
    return school, section, subject, teacher


def _slot(slot):
    return slot.window.day_of_week, slot.window.start_minute, slot.window.end_minute, slot.room_id


def test_first_slot_on_requested_day(store, setup):
    school, section, _subject, teacher = setup

    slot = suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=60, day_of_week=3)

    assert _slot(slot) == (3, 480, 540, None)


def test_existing_entries_of_section_staff_and_room_are_avoided(store, factory, setup):
    school, section, subject, teacher = setup
    other_section = factory.section(school, name="B")
    other_teacher = factory.staff(school, "Grace")
    room = factory.room(school, "R1")
    factory.entry(school, section, subject, other_teacher, day=1, start="08:00", end="08:30")
    factory.entry(school, other_section, subject, teacher, day=1, start="08:30", end="09:00")
    factory.entry(school, other_section, subject, other_teacher, day=1, start="09:00", end="09:30", room=room)

    slot = suggest_slot(
        store,
        school.id,
        section_id=section.id,
        staff_id=teacher.id,
        duration_minutes=30,
        day_of_week=1,
        preferred_room_id=room.id,
    )

    assert _slot(slot) == (1, 570, 600, room.id)


def test_without_day_scans_the_week_in_order(store, factory, setup):
    school, section, subject, teacher = setup
    factory.entry(school, section, subject, teacher, day=1, start="08:00", end="10:00")

    slot = suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=60)

    assert _slot(slot) == (2, 480, 540, None)


def test_full_day_returns_none(store, factory, setup):
    school, section, subject, teacher = setup
    factory.entry(school, section, subject, teacher, day=4, start="08:00", end="10:00")

    assert suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=30, day_of_week=4) is None


def test_teaching_limit_is_enforced(store, factory):
    school = factory.school("08:00", "12:00")
    section = factory.section(school)
    subject = factory.subject(school)
    teacher = factory.staff(school, "Ada", max_weekly_hours=2)
    factory.entry(school, section, subject, teacher, day=1, start="08:00", end="09:30")

    with pytest.raises(TeachingLimitExceeded) as exc:
        suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=60)
    assert exc.value.limit_hours == 2
    assert exc.value.projected_hours == pytest.approx(2.5)

    slot = suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=30)
    assert slot is not None


@pytest.mark.parametrize(
    "field, error",
    [("section_id", SectionNotFound), ("staff_id", StaffNotFound), ("preferred_room_id", RoomNotFound)],
)
def test_unknown_references_raise_lookup_errors(store, setup, field, error):
    school, section, _subject, teacher = setup
    kwargs = {"section_id": section.id, "staff_id": teacher.id, "duration_minutes": 60}
    kwargs[field] = uuid.uuid4()

    with pytest.raises(error):
        suggest_slot(store, school.id, **kwargs)
    assert issubclass(error, LookupError)


def test_rows_of_another_school_are_not_found(store, factory, setup):
    school, section, _subject, _teacher = setup
    other_school = factory.school()
    outsider = factory.staff(other_school, "Outsider")

    with pytest.raises(StaffNotFound):
        suggest_slot(store, school.id, section_id=section.id, staff_id=outsider.id, duration_minutes=60)


def test_school_without_hours_is_a_config_error(store, factory):
    school = factory.school(start=None, end=None)

    with pytest.raises(TimetableConfigError):
        suggest_slot(store, school.id, section_id=uuid.uuid4(), staff_id=uuid.uuid4(), duration_minutes=60)


@pytest.mark.parametrize("duration", [10, 241])
def test_duration_bounds(store, setup, duration):
    school, section, _subject, teacher = setup

    with pytest.raises(ValueError):
        suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=duration)


def test_entry_with_empty_range_is_ignored(store, setup, monkeypatch):
    school, section, subject, teacher = setup
    legacy = SimpleNamespace(
        id=uuid.uuid4(),
        section_id=section.id,
        subject_id=subject.id,
        staff_id=teacher.id,
        room_id=None,
        day_of_week=3,
        start_time=time(8, 0),
        end_time=time(8, 0),
    )
    monkeypatch.setattr(store, "list_entries", lambda school_id, **filters: [legacy])
    teacher.max_weekly_teaching_hours = 1
    store.db.commit()

    slot = suggest_slot(store, school.id, section_id=section.id, staff_id=teacher.id, duration_minutes=60, day_of_week=3)

    assert _slot(slot) == (3, 480, 540, None)
