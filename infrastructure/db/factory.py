from __future__ import annotations

import logging

from domain.repositories import LedgerStore
from infrastructure.config.settings import Settings

from .adjustment_repository_sqlite import SqliteAdjustmentRepository
from .availability_repository_sqlite import SqliteAvailabilityRepository
from .payment_repository_sqlite import SqlitePaymentRepository
from .user_repository_sqlite import SqliteUserRepository

logger = logging.getLogger(__name__)


def build_ledger_store(settings: Settings) -> LedgerStore:
    """Wire the repositories for the configured database backend."""

    if settings.db_backend == "postgres":
        from .ledger_repository_postgres import (
            PostgresAdjustmentRepository,
            PostgresAvailabilityRepository,
            PostgresPaymentRepository,
            PostgresUserRepository,
        )

        params = settings.postgres.as_params()
        logger.info("Using Postgres ledger at %s/%s", settings.postgres.host, settings.postgres.dbname)
        return LedgerStore(
            users=PostgresUserRepository(params),
            payments=PostgresPaymentRepository(params),
            adjustments=PostgresAdjustmentRepository(params),
            availability=PostgresAvailabilityRepository(params),
        )

    if settings.db_backend != "sqlite":
        raise RuntimeError(f"Unknown DB_BACKEND: {settings.db_backend}")

    logger.info("Using SQLite ledger at %s", settings.db_path)
    return LedgerStore(
        users=SqliteUserRepository(settings.db_path),
        payments=SqlitePaymentRepository(settings.db_path),
        adjustments=SqliteAdjustmentRepository(settings.db_path),
        availability=SqliteAvailabilityRepository(settings.db_path),
    )
