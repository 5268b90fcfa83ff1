from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Protocol

from .models import Adjustment, AvailabilityWindow, Payment, User


class UserRepository(Protocol):
    """
    Abstraction over user persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `User` domain model.
    - Hiding any SQL / driver details from the application layer.
    - Raising `StoreFailure` for any I/O error.
    """

    def get_user(self, external_id: str) -> Optional[User]:
        """Return the user with the given external ID, or None if not found."""

        ...

    def add_user(self, user: User) -> None:
        """Persist a new user."""

        ...

    def bind_driver(self, rider_id: str, driver_id: str) -> bool:
        """
        Bind a rider to a driver.

        Implementations must only apply the bind if the rider is not bound
        yet, in a single atomic statement. Returns False when nothing
        changed.
        """

        ...

    def list_riders_of(self, driver_id: str) -> List[User]:
        """Return the riders currently bound to `driver_id`."""

        ...

    def list_drivers(self) -> List[User]:
        """Return all users registered as drivers."""

        ...


class PaymentRepository(Protocol):
    def find_nearest_payment(self, rider_id: str) -> Optional[Payment]:
        """
        Return the rider's most recent payment by date.

        Ties on the same date are broken by insertion order, latest wins.
        """

        ...

    def insert_payment(self, payment: Payment) -> bool:
        """
        Insert a payment unless the rider already has one for that month.

        Returns False when the month was already taken.
        """

        ...


class AdjustmentRepository(Protocol):
    def list_adjustments_this_month(
        self,
        rider_id: str,
        today: date,
    ) -> List[Adjustment]:
        """Return adjustments in `today`'s month, oldest first."""

        ...

    def insert_adjustment(self, adjustment: Adjustment) -> None:
        ...


class AvailabilityRepository(Protocol):
    def find_availability(
        self,
        driver_id: str,
        month: str,
    ) -> Optional[AvailabilityWindow]:
        """Return the driver's window for a `YYYY-MM` month, if any."""

        ...

    def upsert_availability(self, window: AvailabilityWindow) -> None:
        """Insert the window, replacing any existing row for its month."""

        ...


@dataclass
class LedgerStore:
    """The full set of repositories the bot reads and writes per event."""

    users: UserRepository
    payments: PaymentRepository
    adjustments: AdjustmentRepository
    availability: AvailabilityRepository
