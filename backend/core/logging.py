from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILENAME = "timetable.log"

# Per-run progress (seeding counts, skipped rows, time budget) is logged here.
ENGINE_LOGGERS = ("solver", "services")


def _resolve_level(environment: str, log_level: str | None) -> int:
    if log_level:
        return logging.getLevelName(log_level.upper())
    return logging.INFO if environment == "production" else logging.DEBUG


def setup_logging(*, environment: str, log_level: str | None = None, log_dir: Path | None = None) -> None:
    """Configure process-wide logging once.

    Development logs to the console at DEBUG; production adds a rotating
    `timetable.log` under `log_dir` and defaults to INFO. `log_level` overrides
    both. A second call is a no-op.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").lower().strip()
    level = _resolve_level(env, log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if env == "production" and log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                Path(log_dir) / LOG_FILENAME,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", *ENGINE_LOGGERS):
        logging.getLogger(name).setLevel(level)
    # SQL echo stays off unless asked for explicitly.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
