from __future__ import annotations

import time
from typing import Iterable

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, OperationalError
from sqlalchemy.orm import sessionmaker

from core.config import settings


class DatabaseUnavailableError(RuntimeError):
    """Raised when the database is temporarily unreachable (transient connectivity failure)."""


_RETRY_DELAYS_SECONDS: list[float] = [0.2, 0.5, 1.0]


def _iter_exception_messages(exc: BaseException) -> Iterable[str]:
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        msg = str(cur)
        if msg:
            yield msg
        cur = getattr(cur, "__cause__", None) or getattr(cur, "__context__", None)


def is_transient_db_connectivity_error(exc: BaseException) -> bool:
    """Heuristically detect transient DB connectivity failures (DNS/timeouts/refused).

    Constraint/validation/SQL errors are never treated as transient.
    """

    joined = "\n".join(m.lower() for m in _iter_exception_messages(exc))

    # DNS resolution failures
    if "getaddrinfo failed" in joined:
        return True
    if "could not translate host name" in joined:
        return True
    if "name or service not known" in joined:
        return True

    # Connection refused / reset / closed
    if "connection refused" in joined:
        return True
    if "actively refused" in joined:
        return True
    if "connection reset" in joined:
        return True
    if "server closed the connection unexpectedly" in joined:
        return True

    # Timeouts
    if "timeout" in joined:
        return True
    if "timed out" in joined:
        return True

    return False


def normalize_database_url(url: str) -> str:
    url = url.strip()

    # Normalize common Postgres URLs to SQLAlchemy's psycopg2 dialect.
    if url.startswith("postgresql://"):
        url = "postgresql+psycopg2://" + url.removeprefix("postgresql://")
    elif url.startswith("postgres://"):
        url = "postgresql+psycopg2://" + url.removeprefix("postgres://")
    elif url.startswith("postgresql+psycopg://"):
        url = "postgresql+psycopg2://" + url.removeprefix("postgresql+psycopg://")
    return url


def get_engine(database_url: str | None = None) -> Engine:
    url = normalize_database_url(database_url or settings.database_url)

    connect_args: dict[str, object] = {}
    try:
        backend = make_url(url).get_backend_name()
    except ArgumentError:
        backend = ""

    if backend == "sqlite":
        # FastAPI runs sync endpoints in a threadpool; SQLite connections must be shareable.
        connect_args["check_same_thread"] = False
    elif backend == "postgresql":
        # connect_timeout keeps outages from hanging requests (used by retries and /health).
        connect_args["connect_timeout"] = 3

    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


ENGINE = get_engine()
SessionLocal = sessionmaker(bind=ENGINE, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db():
    last_exc: BaseException | None = None

    # Retry session acquisition by doing an explicit lightweight ping (SELECT 1).
    for attempt in range(len(_RETRY_DELAYS_SECONDS) + 1):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        except OperationalError as exc:
            last_exc = exc
            db.close()
            if not is_transient_db_connectivity_error(exc) or attempt >= len(_RETRY_DELAYS_SECONDS):
                break
            time.sleep(_RETRY_DELAYS_SECONDS[attempt])
            continue

        # Do NOT wrap `yield db` in the same try/except as the ping:
        # endpoint exceptions must propagate unchanged instead of turning into a 503.
        try:
            yield db
        finally:
            db.close()
        return

    raise DatabaseUnavailableError("Database temporarily unavailable") from last_exc

