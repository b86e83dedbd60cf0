from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time

from solver.errors import TimetableConfigError


WEEKDAYS: tuple[int, ...] = (1, 2, 3, 4, 5)
DEFAULT_STEP_MINUTES = 30

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    m = _HHMM.match((value or "").strip())
    if m is None:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    return int(m.group(1)) * 60 + int(m.group(2))


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start_minute, end_minute) on one weekday."""

    day_of_week: int
    start_minute: int
    end_minute: int

    def __post_init__(self) -> None:
        if self.start_minute >= self.end_minute:
            raise ValueError(
                f"TimeWindow start ({self.start_minute}) must be before end ({self.end_minute})"
            )

    @classmethod
    def from_times(cls, day_of_week: int, start: time, end: time) -> "TimeWindow":
        return cls(int(day_of_week), time_to_minutes(start), time_to_minutes(end))

    @property
    def duration(self) -> int:
        return self.end_minute - self.start_minute

    def overlaps(self, other: "TimeWindow") -> bool:
        if self.day_of_week != other.day_of_week:
            return False
        return not (self.end_minute <= other.start_minute or other.end_minute <= self.start_minute)


@dataclass(frozen=True)
class OperatingHours:
    day_start: int
    day_end: int

    @property
    def length(self) -> int:
        return self.day_end - self.day_start


def resolve_operating_hours(
    school_start: time | None,
    school_end: time | None,
    *,
    preferred_start: str | None = None,
    preferred_end: str | None = None,
) -> OperatingHours:
    """Apply the per-run override to the school's stored hours.

    Each side of the override is applied independently.
    """

    try:
        start = parse_hhmm(preferred_start) if preferred_start else None
        end = parse_hhmm(preferred_end) if preferred_end else None
    except ValueError as exc:
        raise TimetableConfigError("INVALID_OPERATING_HOURS", str(exc)) from exc

    if start is None and school_start is not None:
        start = time_to_minutes(school_start)
    if end is None and school_end is not None:
        end = time_to_minutes(school_end)

    if start is None or end is None:
        raise TimetableConfigError("OPERATING_HOURS_NOT_CONFIGURED", "School operating hours are not configured.")
    if start >= end:
        raise TimetableConfigError(
            "INVALID_OPERATING_HOURS",
            f"Operating hours start ({format_minutes(start)}) must be before end ({format_minutes(end)}).",
        )
    return OperatingHours(day_start=start, day_end=end)


def candidate_start_minutes(
    day_start: int,
    day_end: int,
    duration: int,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[int]:
    """Ascending start minutes on the `step` grid such that start + duration <= day_end."""

    if duration <= 0:
        raise ValueError("duration must be positive")
    if step <= 0:
        raise ValueError("step must be positive")
    return list(range(day_start, day_end - duration + 1, step))
