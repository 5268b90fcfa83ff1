from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class Role(Enum):
    RIDER = "rider"
    DRIVER = "driver"
    UNSET = "unset"


@dataclass
class User:
    """
    Domain representation of a rider or driver.

    This model is intentionally simple and independent of any
    particular transport (LINE, Telegram) or database schema. The
    `external_id` is the identifier handed to us by the chat channel.
    """

    external_id: str
    display_name: str
    role: Role
    bound_driver_id: Optional[str] = None

    @property
    def is_rider(self) -> bool:
        return self.role is Role.RIDER

    @property
    def is_driver(self) -> bool:
        return self.role is Role.DRIVER


@dataclass
class Payment:
    """A rider's lump-sum monthly fare transfer."""

    rider_id: str
    amount: int
    recorded_at: date


@dataclass
class Adjustment:
    """
    A driver-entered correction to a rider's monthly balance.

    A positive delta means the rider paid too little this month and owes
    the difference; a negative delta is a credit for next month.
    """

    rider_id: str
    delta: int
    note: str
    recorded_at: date


@dataclass
class AvailabilityWindow:
    """
    A driver's declared open/closed date range for one calendar month.

    `capacity` is only meaningful (and required) for open windows.
    """

    driver_id: str
    start_date: date
    end_date: date
    is_open: bool
    note: str
    capacity: Optional[int] = None

    @property
    def month(self) -> str:
        return month_key(self.start_date)


def month_key(day: date) -> str:
    """Return the `YYYY-MM` key used to compare and store calendar months."""

    return f"{day.year:04d}-{day.month:02d}"
