from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional

import psycopg2

from domain.errors import StoreFailure
from domain.models import (
    Adjustment,
    AvailabilityWindow,
    Payment,
    Role,
    User,
    month_key,
)
from domain.repositories import (
    AdjustmentRepository,
    AvailabilityRepository,
    PaymentRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class _PostgresRepository:
    """
    Shared connection handling for the Postgres repositories.

    `db_params` is passed straight to `psycopg2.connect`. Any
    `psycopg2.Error` is re-raised as `StoreFailure`.
    """

    _SCHEMA: str = ""

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    @contextmanager
    def _get_connection(self) -> Iterator["psycopg2.extensions.connection"]:
        try:
            conn = psycopg2.connect(**self._db_params)
        except psycopg2.Error as exc:
            raise StoreFailure(f"cannot connect to Postgres: {exc}") from exc

        try:
            with conn:
                yield conn
        except psycopg2.Error as exc:
            logger.error("Postgres error: %s", exc)
            raise StoreFailure(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(self._SCHEMA)


class PostgresUserRepository(_PostgresRepository, UserRepository):
    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            display_name TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'unset',
            bound_driver_id TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """

    _COLUMNS = "id, display_name, role, bound_driver_id"

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
            with conn.cursor() as cur:
                cur.execute(f"SELECT {self._COLUMNS} FROM users WHERE id = %s", (external_id,))
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def add_user(self, user: User) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO users (id, display_name, role, bound_driver_id)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (user.external_id, user.display_name, user.role.value, user.bound_driver_id),
                )

    def bind_driver(self, rider_id: str, driver_id: str) -> bool:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE users
                    SET bound_driver_id = %s
                    WHERE id = %s AND role = 'rider' AND bound_driver_id IS NULL
                    """,
                    (driver_id, rider_id),
                )
                return cur.rowcount == 1

    def list_riders_of(self, driver_id: str) -> List[User]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {self._COLUMNS} FROM users
                    WHERE role = 'rider' AND bound_driver_id = %s
                    ORDER BY created_at, id
                    """,
                    (driver_id,),
                )
                return [self._to_domain(row) for row in cur.fetchall()]

    def list_drivers(self) -> List[User]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {self._COLUMNS} FROM users
                    WHERE role = 'driver'
                    ORDER BY created_at, id
                    """
                )
                return [self._to_domain(row) for row in cur.fetchall()]


class PostgresPaymentRepository(_PostgresRepository, PaymentRepository):
    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS payments (
            id BIGSERIAL PRIMARY KEY,
            rider_id TEXT NOT NULL,
            amount INTEGER NOT NULL CHECK (amount > 0),
            recorded_at DATE NOT NULL,
            month CHAR(7) NOT NULL,
            UNIQUE (rider_id, month)
        )
    """

    def find_nearest_payment(self, rider_id: str) -> Optional[Payment]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT rider_id, amount, recorded_at
                    FROM payments
                    WHERE rider_id = %s
                    ORDER BY recorded_at DESC, id DESC
                    LIMIT 1
                    """,
                    (rider_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return Payment(rider_id=str(row[0]), amount=int(row[1]), recorded_at=row[2])

    def insert_payment(self, payment: Payment) -> bool:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO payments (rider_id, amount, recorded_at, month)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (rider_id, month) DO NOTHING
                    """,
                    (
                        payment.rider_id,
                        payment.amount,
                        payment.recorded_at,
                        month_key(payment.recorded_at),
                    ),
                )
                return cur.rowcount == 1


class PostgresAdjustmentRepository(_PostgresRepository, AdjustmentRepository):
    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS adjustments (
            id BIGSERIAL PRIMARY KEY,
            rider_id TEXT NOT NULL,
            delta INTEGER NOT NULL,
            note VARCHAR(30) NOT NULL DEFAULT '',
            recorded_at DATE NOT NULL,
            month CHAR(7) NOT NULL
        );
        CREATE INDEX IF NOT EXISTS adjustments_rider_month ON adjustments (rider_id, month);
    """

    def list_adjustments_this_month(self, rider_id: str, today: date) -> List[Adjustment]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT rider_id, delta, note, recorded_at
                    FROM adjustments
                    WHERE rider_id = %s AND month = %s
                    ORDER BY recorded_at ASC, id ASC
                    """,
                    (rider_id, month_key(today)),
                )
                return [
                    Adjustment(
                        rider_id=str(row[0]),
                        delta=int(row[1]),
                        note=row[2],
                        recorded_at=row[3],
                    )
                    for row in cur.fetchall()
                ]

    def insert_adjustment(self, adjustment: Adjustment) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO adjustments (rider_id, delta, note, recorded_at, month)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (
                        adjustment.rider_id,
                        adjustment.delta,
                        adjustment.note,
                        adjustment.recorded_at,
                        month_key(adjustment.recorded_at),
                    ),
                )


class PostgresAvailabilityRepository(_PostgresRepository, AvailabilityRepository):
    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS availability (
            driver_id TEXT NOT NULL,
            month CHAR(7) NOT NULL,
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            is_open BOOLEAN NOT NULL,
            note TEXT NOT NULL DEFAULT '',
            capacity INTEGER,
            PRIMARY KEY (driver_id, month)
        )
    """

    def find_availability(self, driver_id: str, month: str) -> Optional[AvailabilityWindow]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT driver_id, start_date, end_date, is_open, note, capacity
                    FROM availability
                    WHERE driver_id = %s AND month = %s
                    """,
                    (driver_id, month),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return AvailabilityWindow(
                    driver_id=str(row[0]),
                    start_date=row[1],
                    end_date=row[2],
                    is_open=bool(row[3]),
                    note=row[4],
                    capacity=row[5],
                )

    def upsert_availability(self, window: AvailabilityWindow) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO availability
                        (driver_id, month, start_date, end_date, is_open, note, capacity)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (driver_id, month) DO UPDATE SET
                        start_date = EXCLUDED.start_date,
                        end_date = EXCLUDED.end_date,
                        is_open = EXCLUDED.is_open,
                        note = EXCLUDED.note,
                        capacity = EXCLUDED.capacity
                    """,
                    (
                        window.driver_id,
                        window.month,
                        window.start_date,
                        window.end_date,
                        window.is_open,
                        window.note,
                        window.capacity,
                    ),
                )
