"""
SQLAlchemy engine singleton with connection pooling.

The booking engine relies on the database to serialize writers of the same
listing, so every transaction goes through this pool. SQLite URLs (local
development and tests) get a busy timeout so a second writer waits for the
listing lock instead of failing straight away.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from stay_booking.config import DATABASE_URL, SQLITE_BUSY_TIMEOUT


def build_engine(url: str) -> Engine:
    """
    Create an engine with the service's pool settings.

    Args:
        url: SQLAlchemy database URL

    Returns:
        Engine: configured engine (no connection is opened yet)

    Example:
        >>> engine = build_engine("sqlite+pysqlite:///./bookings.db")
        >>> engine.dialect.name
        'sqlite'
    """
    options: dict[str, Any] = {
        "future": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "echo": False,
    }
    if url.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT,
        }
    return create_engine(url, **options)


if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")

engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(db_engine: Engine) -> bool:
    """
    Check that the database answers a trivial query.

    Used by the /ready endpoint before the service accepts traffic.

    Args:
        db_engine: Engine to probe

    Returns:
        bool: True if the database is reachable, False otherwise
    """
    try:
        with db_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
