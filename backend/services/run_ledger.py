from __future__ import annotations

import logging
import uuid
from typing import Any

from solver.greedy_solver import ProposedPlacement
from solver.time_grid import minutes_to_time
from models.timetable_entry import TimetableEntry
from models.timetable_placement import TimetablePlacement
from models.timetable_run import TimetableRun


logger = logging.getLogger(__name__)


class RunLedger:
    """Lifecycle of one generation run: RUNNING, then exactly one of SUCCEEDED/FAILED."""

    def __init__(self, store: Any):
        self.store = store
        self.run: TimetableRun | None = None

    @property
    def run_id(self) -> uuid.UUID | None:
        return self.run.id if self.run is not None else None

    def open(self, school_id: uuid.UUID, *, options: dict[str, Any], solver_version: str) -> TimetableRun:
        # Committed on its own so the run survives a crash during search.
        self.run = self.store.create_run(school_id, options=options, solver_version=solver_version)
        logger.info("Timetable run %s started for school %s", self.run.id, school_id)
        return self.run

    def _rows(self, placements: list[ProposedPlacement]) -> tuple[list[TimetablePlacement], list[TimetableEntry]]:
        run = self.run
        placement_rows: list[TimetablePlacement] = []
        entry_rows: list[TimetableEntry] = []
        for seq, p in enumerate(placements):
            start = minutes_to_time(p.window.start_minute)
            end = minutes_to_time(p.window.end_minute)
            placement_rows.append(
                TimetablePlacement(
                    run_id=run.id,
                    school_id=run.school_id,
                    sequence=seq,
                    section_id=p.section_id,
                    subject_id=p.subject_id,
                    staff_id=p.staff_id,
                    room_id=p.room_id,
                    day_of_week=p.window.day_of_week,
                    start_time=start,
                    end_time=end,
                    score=p.score,
                    violations=p.violations,
                )
            )
            entry_rows.append(
                TimetableEntry(
                    school_id=run.school_id,
                    section_id=p.section_id,
                    subject_id=p.subject_id,
                    staff_id=p.staff_id,
                    room_id=p.room_id,
                    day_of_week=p.window.day_of_week,
                    start_time=start,
                    end_time=end,
                    generated_by_run_id=run.id,
                )
            )
        return placement_rows, entry_rows

    def commit_success(self, placements: list[ProposedPlacement], *, metrics: dict[str, Any]) -> list[TimetableEntry]:
        """Write placements, entries and the SUCCEEDED status in one transaction.

        On any failure the transaction is rolled back, the run is marked FAILED in a
        separate commit and the original exception propagates.
        """

        if self.run is None:
            raise RuntimeError("RunLedger.open() must be called first")

        placement_rows, entry_rows = self._rows(placements)
        try:
            with self.store.transaction():
                self.store.add_placements(placement_rows)
                self.store.add_entries(entry_rows)
                self.store.finish_run(self.run, status="SUCCEEDED", metrics=metrics)
        except Exception as exc:
            self.fail(exc)
            raise

        logger.info(
            "Timetable run %s succeeded: %s/%s placed",
            self.run.id,
            metrics.get("placedCount"),
            metrics.get("requestedCount"),
        )
        return entry_rows

    def fail(self, exc: Exception) -> None:
        """Mark the run FAILED in its own commit and tag `exc` with the run id."""

        if self.run is None:
            return
        exc.run_id = self.run.id

        code = getattr(exc, "code", None)
        note = f"{type(exc).__name__}({code}): {exc}" if code else f"{type(exc).__name__}: {exc}"
        try:
            with self.store.transaction():
                self.store.finish_run(self.run, status="FAILED", notes=note)
        except Exception:
            # The caller re-raises the original error; this one is only logged.
            logger.exception("Could not mark timetable run %s as FAILED", self.run.id)
            return
        logger.warning("Timetable run %s failed: %s", self.run.id, note)
