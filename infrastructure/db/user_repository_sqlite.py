from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import List, Optional

from domain.models import Role, User
from domain.repositories import UserRepository

from .sqlite import connect


class SqliteUserRepository(UserRepository):
    """
    SQLite-backed implementation of `UserRepository`.

    This repository owns the `users` table and maps rows to the `User`
    domain model. It is self-initialising: the table is created if needed.
    """

    _COLUMNS = "id, display_name, role, bound_driver_id"

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
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'unset',
                    bound_driver_id TEXT
                )
                """
            )

    @staticmethod
    def _to_domain(row: tuple) -> User:
        return User(
            external_id=str(row[0]),
            display_name=row[1],
            role=Role(row[2]),
            bound_driver_id=row[3],
        )

    def get_user(self, external_id: str) -> Optional[User]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {self._COLUMNS} FROM users WHERE id = ?", (external_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def add_user(self, user: User) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT OR IGNORE INTO users (id, display_name, role, bound_driver_id)
                VALUES (?, ?, ?, ?)
                """,
                (user.external_id, user.display_name, user.role.value, user.bound_driver_id),
            )

    def bind_driver(self, rider_id: str, driver_id: str) -> bool:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE users
                SET bound_driver_id = ?
                WHERE id = ? AND role = 'rider' AND bound_driver_id IS NULL
                """,
                (driver_id, rider_id),
            )
            return cur.rowcount == 1

    def list_riders_of(self, driver_id: str) -> List[User]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT {self._COLUMNS} FROM users
                WHERE role = 'rider' AND bound_driver_id = ?
                ORDER BY rowid
                """,
                (driver_id,),
            )
            return [self._to_domain(row) for row in cur.fetchall()]

    def list_drivers(self) -> List[User]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {self._COLUMNS} FROM users WHERE role = 'driver' ORDER BY rowid"
            )
            return [self._to_domain(row) for row in cur.fetchall()]
