from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Union

from domain.errors import StoreFailure

logger = logging.getLogger(__name__)


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Open a connection, commit on success and always close.

    Any `sqlite3.Error` is re-raised as `StoreFailure`.
    """

    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as exc:
        raise StoreFailure(f"cannot open {db_path}: {exc}") from exc

    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("SQLite error on %s: %s", db_path, exc)
        raise StoreFailure(str(exc)) from exc
    finally:
        conn.close()


def to_date(value: Union[str, date]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)
