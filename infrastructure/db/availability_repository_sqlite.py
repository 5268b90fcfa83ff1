from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import Optional

from domain.models import AvailabilityWindow
from domain.repositories import AvailabilityRepository

from .sqlite import connect, to_date


class SqliteAvailabilityRepository(AvailabilityRepository):
    """
    SQLite-backed implementation of `AvailabilityRepository`.

    One row per driver per month; upserts overwrite every field.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _get_connection(self) -> AbstractContextManager[sqlite3.Connection]:
        return connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS availability (
                    driver_id TEXT NOT NULL,
                    month TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT NOT NULL,
                    is_open INTEGER NOT NULL,
                    note TEXT NOT NULL DEFAULT '',
                    capacity INTEGER,
                    PRIMARY KEY (driver_id, month)
                )
                """
            )

    @staticmethod
    def _to_domain(row: tuple) -> AvailabilityWindow:
        return AvailabilityWindow(
            driver_id=str(row[0]),
            start_date=to_date(row[1]),
            end_date=to_date(row[2]),
            is_open=bool(row[3]),
            note=row[4],
            capacity=int(row[5]) if row[5] is not None else None,
        )

    def find_availability(self, driver_id: str, month: str) -> Optional[AvailabilityWindow]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT driver_id, start_date, end_date, is_open, note, capacity
                FROM availability
                WHERE driver_id = ? AND month = ?
                """,
                (driver_id, month),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def upsert_availability(self, window: AvailabilityWindow) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO availability
                    (driver_id, month, start_date, end_date, is_open, note, capacity)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (driver_id, month) DO UPDATE SET
                    start_date = excluded.start_date,
                    end_date = excluded.end_date,
                    is_open = excluded.is_open,
                    note = excluded.note,
                    capacity = excluded.capacity
                """,
                (
                    window.driver_id,
                    window.month,
                    window.start_date.isoformat(),
                    window.end_date.isoformat(),
                    int(window.is_open),
                    window.note,
                    window.capacity,
                ),
            )
