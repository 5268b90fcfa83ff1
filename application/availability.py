from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from domain.commands import SetAvailability
from domain.errors import CrossMonthRange, InvertedRange, MissingCapacity, PastDate
from domain.models import AvailabilityWindow, User, month_key
from domain.repositories import AvailabilityRepository


@dataclass
class AvailabilityResult:
    window: AvailabilityWindow
    replaced: Optional[AvailabilityWindow] = None


def validate_availability(command: SetAvailability, today: date) -> None:
    for day in (command.start, command.end):
        if day < today:
            raise PastDate(day)
    if month_key(command.start) != month_key(command.end):
        raise CrossMonthRange(command.start, command.end)
    if command.end < command.start:
        raise InvertedRange(command.start, command.end)
    if command.is_open and command.capacity is None:
        raise MissingCapacity()


def set_availability(
    driver: User,
    command: SetAvailability,
    availability_repo: AvailabilityRepository,
    today: date,
) -> AvailabilityResult:
    """
    Declare the driver's open or closed range for one calendar month.

    The newest submission for a month always wins: an existing window is
    overwritten field by field, whatever its `is_open` value was. Ranges
    are never merged.
    """

    validate_availability(command, today)

    window = AvailabilityWindow(
        driver_id=driver.external_id,
        start_date=command.start,
        end_date=command.end,
        is_open=command.is_open,
        note=command.note,
        capacity=command.capacity if command.is_open else None,
    )
    existing = availability_repo.find_availability(driver.external_id, window.month)
    availability_repo.upsert_availability(window)
    return AvailabilityResult(window=window, replaced=existing)
