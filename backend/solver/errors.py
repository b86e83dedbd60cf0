from __future__ import annotations

from typing import Any


class TimetableConfigError(Exception):
    """A scheduling precondition is not met (school or operating hours missing/invalid).

    Raised before any run row or placement is created.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class SolverInvariantError(Exception):
    """The placement set violates a hard invariant and must not be persisted."""

    def __init__(self, code: str, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}
