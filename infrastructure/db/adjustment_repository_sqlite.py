from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import date
from typing import List

from domain.models import Adjustment, month_key
from domain.repositories import AdjustmentRepository

from .sqlite import connect, to_date


class SqliteAdjustmentRepository(AdjustmentRepository):
    """SQLite-backed implementation of `AdjustmentRepository`."""

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
                CREATE TABLE IF NOT EXISTS adjustments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    rider_id TEXT NOT NULL,
                    delta INTEGER NOT NULL,
                    note TEXT NOT NULL DEFAULT '',
                    recorded_at TEXT NOT NULL,
                    month TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE INDEX IF NOT EXISTS adjustments_rider_month
                ON adjustments (rider_id, month)
                """
            )

    def list_adjustments_this_month(self, rider_id: str, today: date) -> List[Adjustment]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT rider_id, delta, note, recorded_at
                FROM adjustments
                WHERE rider_id = ? AND month = ?
                ORDER BY recorded_at ASC, id ASC
                """,
                (rider_id, month_key(today)),
            )
            return [
                Adjustment(
                    rider_id=str(row[0]),
                    delta=int(row[1]),
                    note=row[2],
                    recorded_at=to_date(row[3]),
                )
                for row in cur.fetchall()
            ]

    def insert_adjustment(self, adjustment: Adjustment) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO adjustments (rider_id, delta, note, recorded_at, month)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    adjustment.rider_id,
                    adjustment.delta,
                    adjustment.note,
                    adjustment.recorded_at.isoformat(),
                    month_key(adjustment.recorded_at),
                ),
            )
