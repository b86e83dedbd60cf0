import time

import pytest

from solver.errors import SolverInvariantError
from solver.greedy_solver import ProposedPlacement, place_requirements, select_room, verify_no_overlap
from solver.occupancy import OccupancyTracker, ResourceKind
from solver.requirements import EligibleTeacherIndex, Requirement, RoomOption
from solver.scoring import ScoredFallback
from solver.time_grid import OperatingHours, TimeWindow


SCHOOL_DAY = OperatingHours(day_start=8 * 60, day_end=15 * 60)


def _req(section="s1", subject="math", periods=1, duration=60, room_type=None, class_id="c1"):
    return Requirement(
        section_id=section,
        subject_id=subject,
        class_id=class_id,
        periods_per_week=periods,
        duration_minutes=duration,
        preferred_room_type=room_type,
    )


def _eligible(*rows):
    index = EligibleTeacherIndex()
    for subject, class_id, staff in rows:
        index.add(subject, class_id, staff)
    return index


def _slots(result):
    return [(p.window.day_of_week, p.window.start_minute, p.staff_id, p.room_id) for p in result.placements]


def _assert_no_overlap(placements):
    verify_no_overlap(placements)


def test_scenario_a_one_occurrence_per_weekday_at_earliest_slot():
    result = place_requirements(
        [_req(periods=5)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
    )

    assert result.placed_count == 5 == result.requested_count
    assert _slots(result) == [(d, 480, "t1", None) for d in (1, 2, 3, 4, 5)]


def test_scenario_b_unavailable_mornings_push_starts_to_nine():
    tracker = OccupancyTracker()
    for day in (1, 2, 3, 4, 5):
        tracker.reserve(ResourceKind.STAFF, "t1", TimeWindow(day, 480, 540))

    result = place_requirements(
        [_req(periods=5)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=tracker,
        hours=SCHOOL_DAY,
    )

    assert result.placed_count == 5
    assert sorted(p.window.day_of_week for p in result.placements) == [1, 2, 3, 4, 5]
    assert all(p.window.start_minute >= 540 for p in result.placements)


def test_scenario_c_shared_teacher_over_capacity_places_partially():
    short_day = OperatingHours(day_start=480, day_end=600)  # two 60-minute slots a day
    requirements = [_req(section="s1", periods=6), _req(section="s2", periods=6)]

    result = place_requirements(
        requirements,
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=short_day,
    )

    assert result.requested_count == 12
    assert result.placed_count == 10
    assert result.placed_count < result.requested_count
    assert len(result.unplaced) == 2
    _assert_no_overlap(result.placements)


def test_more_periods_than_weekdays_reuse_days_in_order():
    result = place_requirements(
        [_req(periods=6)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
    )

    assert _slots(result)[-1] == (1, 540, "t1", None)


def test_busy_teacher_falls_through_to_next_eligible():
    tracker = OccupancyTracker()
    tracker.reserve(ResourceKind.STAFF, "t1", TimeWindow(1, 480, 540))

    result = place_requirements(
        [_req()],
        eligible=_eligible(("math", "c1", "t1"), ("math", "c1", "t2")),
        rooms=[],
        tracker=tracker,
        hours=SCHOOL_DAY,
    )

    assert _slots(result) == [(1, 480, "t2", None)]


def test_class_specific_qualification_hides_wildcard():
    index = _eligible(("math", None, "any"), ("math", "c1", "specific"))
    assert index.resolve("math", "c1") == ["specific"]
    assert index.resolve("math", "c2") == ["any"]
    assert index.resolve("art", "c1") == []


def test_requirement_without_teacher_is_skipped_silently():
    result = place_requirements(
        [_req(subject="art", periods=3), _req(periods=1)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
    )

    assert result.requested_count == 4
    assert result.placed_count == 1
    assert result.skipped_without_teacher == [{"section_id": "s1", "subject_id": "art"}]
    assert all(p.subject_id == "math" for p in result.placements)


def test_room_selection_prefers_first_matching_or_typeless_room():
    rooms = [RoomOption("gym", "GYM"), RoomOption("lab", "LAB"), RoomOption("plain", None)]
    tracker = OccupancyTracker()
    w = TimeWindow(1, 480, 540)

    assert select_room(_req(room_type="LAB"), rooms, tracker, w) == (True, "lab")

    tracker.reserve(ResourceKind.ROOM, "lab", w)
    assert select_room(_req(room_type="LAB"), rooms, tracker, w) == (True, "plain")

    tracker.reserve(ResourceKind.ROOM, "plain", w)
    assert select_room(_req(room_type="LAB"), rooms, tracker, w) == (False, None)


def test_no_room_type_means_no_room():
    rooms = [RoomOption("lab", "LAB")]
    assert select_room(_req(), rooms, OccupancyTracker(), TimeWindow(1, 480, 540)) == (True, None)


def test_missing_room_moves_search_to_a_later_slot():
    tracker = OccupancyTracker()
    tracker.reserve(ResourceKind.ROOM, "lab", TimeWindow(1, 480, 600))

    result = place_requirements(
        [_req(room_type="LAB")],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[RoomOption("lab", "LAB")],
        tracker=tracker,
        hours=SCHOOL_DAY,
    )

    assert _slots(result) == [(1, 600, "t1", "lab")]


def test_seeded_windows_are_never_overlapped():
    tracker = OccupancyTracker()
    pinned = TimeWindow(1, 480, 600)
    unavailable = TimeWindow(2, 480, 720)
    tracker.reserve(ResourceKind.SECTION, "s1", pinned)
    tracker.reserve(ResourceKind.STAFF, "t1", unavailable)

    result = place_requirements(
        [_req(periods=5)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=tracker,
        hours=SCHOOL_DAY,
    )

    for p in result.placements:
        assert not p.window.overlaps(pinned)
        assert not p.window.overlaps(unavailable)


def test_placement_is_deterministic():
    def run():
        return place_requirements(
            [_req(section="s1", periods=4), _req(section="s2", periods=4, room_type="LAB")],
            eligible=_eligible(("math", "c1", "t1"), ("math", "c1", "t2")),
            rooms=[RoomOption("lab", "LAB")],
            tracker=OccupancyTracker(),
            hours=SCHOOL_DAY,
        ).placements

    assert run() == run()


def test_duration_longer_than_day_is_unplaced():
    result = place_requirements(
        [_req(duration=8 * 60)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
    )

    assert result.placed_count == 0
    assert len(result.unplaced) == 1


def test_expired_deadline_stops_the_search():
    result = place_requirements(
        [_req(periods=3)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
        deadline=time.monotonic() - 1,
    )

    assert result.timed_out
    assert result.placed_count == 0
    assert result.requested_count == 3
    assert [(u["occurrence"], u["timed_out"]) for u in result.unplaced] == [(1, True), (2, True), (3, True)]


def test_expired_deadline_records_every_later_requirement_as_unplaced():
    result = place_requirements(
        [_req(periods=2), _req(section="s2", subject="art", periods=1)],
        eligible=_eligible(("math", "c1", "t1"), ("art", "c1", "t2")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
        deadline=time.monotonic() - 1,
    )

    assert result.placed_count + len(result.unplaced) == result.requested_count == 3
    assert [(u["section_id"], u["subject_id"]) for u in result.unplaced] == [
        ("s1", "math"),
        ("s1", "math"),
        ("s2", "art"),
    ]


def test_scored_fallback_places_requirement_without_qualified_teacher():
    fallback = ScoredFallback(hours=SCHOOL_DAY, teacher_pool=["t9"])

    result = place_requirements(
        [_req(subject="art", periods=2)],
        eligible=_eligible(),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
        fallback=fallback,
    )

    assert result.placed_count == 2
    assert result.fallback_placed == 2
    assert not result.skipped_without_teacher
    assert {p.staff_id for p in result.placements} == {"t9"}
    assert all(0 < p.score < 1 for p in result.placements)
    _assert_no_overlap(result.placements)


def test_scored_fallback_leaves_qualified_requirements_on_first_fit():
    fallback = ScoredFallback(hours=SCHOOL_DAY, teacher_pool=["t9"])

    result = place_requirements(
        [_req(periods=1)],
        eligible=_eligible(("math", "c1", "t1")),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
        fallback=fallback,
    )

    assert _slots(result) == [(1, 480, "t1", None)]
    assert result.placements[0].score == 1.0
    assert result.fallback_placed == 0


def test_verify_no_overlap_rejects_double_booked_staff():
    a = ProposedPlacement("s1", "math", "t1", None, TimeWindow(1, 480, 540))
    b = ProposedPlacement("s2", "art", "t1", None, TimeWindow(1, 510, 570))

    with pytest.raises(SolverInvariantError) as exc:
        verify_no_overlap([a, b])
    assert exc.value.code == "DOUBLE_BOOKING"
    assert exc.value.details["resource_kind"] == "STAFF"


def test_scored_fallback_keeps_first_candidate_among_equal_scores():
    # Equal loads and an empty week: 11:00-12:00 is centred on the 08:00-15:00 day
    # on every weekday and for both staff members.
    fallback = ScoredFallback(hours=SCHOOL_DAY, teacher_pool=["t1", "t2"])

    result = place_requirements(
        [_req(subject="art", periods=1)],
        eligible=_eligible(),
        rooms=[],
        tracker=OccupancyTracker(),
        hours=SCHOOL_DAY,
        fallback=fallback,
    )

    assert _slots(result) == [(1, 660, "t1", None)]
    assert result.placements[0].score == round(result.placements[0].score, 4)
