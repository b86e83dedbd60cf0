from types import SimpleNamespace

from solver.requirements import (
    EligibleTeacherIndex,
    Requirement,
    infer_requirements,
    load_requirements,
    requirement_from_row,
)


def test_requirement_from_row_defaults():
    row = SimpleNamespace(section_id="s", subject_id="m", periods_per_week=0, duration_minutes=None, preferred_room_type="")

    req = requirement_from_row(row, class_id="c")

    assert req == Requirement("s", "m", "c", 1, 60, None)


def test_inference_skips_explicit_pairs_and_rounds_weekly_hours():
    explicit = [Requirement("s1", "math", "c1", 4, 45)]
    curriculum = [
        ("s1", "c1", "math", 5.0),
        ("s1", "c1", "art", 1.6),
        ("s1", "c1", "music", None),
        ("s1", "c1", "art", 1.6),
    ]

    inferred = infer_requirements(curriculum, existing=explicit)

    assert [(r.subject_id, r.periods_per_week, r.duration_minutes, r.inferred) for r in inferred] == [
        ("art", 2, 60, True),
        ("music", 2, 60, True),
    ]


def test_eligible_index_keeps_first_seen_order_without_duplicates():
    rows = [
        SimpleNamespace(subject_id="m", class_id=None, staff_id="t2"),
        SimpleNamespace(subject_id="m", class_id=None, staff_id="t1"),
        SimpleNamespace(subject_id="m", class_id=None, staff_id="t2"),
    ]

    assert EligibleTeacherIndex.from_rows(rows).resolve("m", "c9") == ["t2", "t1"]



def test_inference_falls_back_to_school_level_subjects_for_classes_without_curriculum(store, factory):
    school = factory.school()
    primary = factory.school_level(school, "Primary")
    grade1 = factory.school_class(school, "Grade 1", level=primary)
    grade2 = factory.school_class(school, "Grade 2", level=primary)
    bare = factory.school_class(school, "Grade 3")
    sec_a = factory.section(school, grade1, "A")
    sec_b = factory.section(school, grade2, "B")
    factory.section(school, bare, "C")
    music = factory.subject(school, "Music", weekly_hours=1)
    art = factory.subject(school, "Art")
    science = factory.subject(school, "Science", weekly_hours=3)
    factory.level_subject(school, primary, music)
    factory.level_subject(school, primary, art)
    factory.class_subject(school, grade2, science)

    requirements = load_requirements(store, school.id, auto_infer=True)

    assert [(r.section_id, r.subject_id, r.periods_per_week) for r in requirements] == [
        (sec_a.id, art.id, 2),
        (sec_a.id, music.id, 1),
        (sec_b.id, science.id, 3),
    ]
    assert all(r.inferred for r in requirements)
