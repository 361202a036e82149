from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from campus_events.config import load_env_once

Bind = Union[Engine, Connection]

_engine: Engine | None = None


def get_engine() -> Engine:
    """Process-wide engine built from DATABASE_URL (or DB_URL)."""
    global _engine

    if _engine is not None:
        return _engine

    load_env_once()

    db_url = os.getenv("DATABASE_URL") or os.getenv("DB_URL")
    if not db_url:
        candidates = [
            f"ENV_PATH={os.getenv('ENV_PATH')}",
            str(Path(__file__).resolve().parents[1] / ".env"),
            str(Path.cwd() / ".env"),
        ]
        raise RuntimeError(
            "DATABASE_URL is not set and no .env provided it. "
            f"Looked at: {', '.join(candidates)}"
        )

    _engine = create_engine(db_url, pool_pre_ping=True, future=True)
    return _engine


def db_ping(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


@contextmanager
def transaction(bind: Bind) -> Iterator[Connection]:
    """
    Yields a connection inside a transaction.

    An Engine opens (and commits) its own transaction; a Connection is assumed
    to already be inside one owned by the caller.
    """
    if isinstance(bind, Connection):
        yield bind
        return
    with bind.begin() as conn:
        yield conn


@contextmanager
def savepoint(bind: Bind) -> Iterator[Connection]:
    """
    Like transaction(), but on a caller's Connection the work runs in a
    SAVEPOINT so a failure rolls back only this block.
    """
    if isinstance(bind, Connection):
        with bind.begin_nested():
            yield bind
        return
    with bind.begin() as conn:
        yield conn
