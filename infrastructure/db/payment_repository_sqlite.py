from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import Optional

from domain.models import Payment, month_key
from domain.repositories import PaymentRepository

from .sqlite import connect, to_date


class SqlitePaymentRepository(PaymentRepository):
    """
    SQLite-backed implementation of `PaymentRepository`.

    The `(rider_id, month)` uniqueness constraint makes the monthly
    check-then-insert safe against concurrent transfers.
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
                CREATE TABLE IF NOT EXISTS payments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    rider_id TEXT NOT NULL,
                    amount INTEGER NOT NULL CHECK (amount > 0),
                    recorded_at TEXT NOT NULL,
                    month TEXT NOT NULL,
                    UNIQUE (rider_id, month)
                )
                """
            )

    @staticmethod
    def _to_domain(row: tuple) -> Payment:
        return Payment(
            rider_id=str(row[0]),
            amount=int(row[1]),
            recorded_at=to_date(row[2]),
        )

    def find_nearest_payment(self, rider_id: str) -> Optional[Payment]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT rider_id, amount, recorded_at
                FROM payments
                WHERE rider_id = ?
                ORDER BY recorded_at DESC, id DESC
                LIMIT 1
                """,
                (rider_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def insert_payment(self, payment: Payment) -> bool:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT OR IGNORE INTO payments (rider_id, amount, recorded_at, month)
                VALUES (?, ?, ?, ?)
                """,
                (
                    payment.rider_id,
                    payment.amount,
                    payment.recorded_at.isoformat(),
                    month_key(payment.recorded_at),
                ),
            )
            return cur.rowcount == 1
