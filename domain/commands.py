from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import ClassVar, Optional

from .models import Role


class CommandKind(Enum):
    SET_ROLE = "set_role"
    BIND_DRIVER = "bind_driver"
    TRANSFER_FARE = "transfer_fare"
    QUERY_FARE = "query_fare"
    LIST_DRIVERS = "list_drivers"
    LIST_RIDERS = "list_riders"
    RECORD_ADJUSTMENT = "record_adjustment"
    SET_AVAILABILITY = "set_availability"
    SHOW_HELP = "show_help"
    ECHO = "echo"


class Command:
    """
    Base of the parsed command variants.

    Each subclass is a frozen dataclass carrying its parsed arguments and
    a `kind` tag used by the router's command tables.
    """

    kind: ClassVar[CommandKind]


@dataclass(frozen=True)
class SetRole(Command):
    kind: ClassVar[CommandKind] = CommandKind.SET_ROLE

    role: Role


@dataclass(frozen=True)
class BindDriver(Command):
    kind: ClassVar[CommandKind] = CommandKind.BIND_DRIVER

    driver_id: str


@dataclass(frozen=True)
class TransferFare(Command):
    kind: ClassVar[CommandKind] = CommandKind.TRANSFER_FARE

    amount: int


@dataclass(frozen=True)
class QueryFare(Command):
    kind: ClassVar[CommandKind] = CommandKind.QUERY_FARE


@dataclass(frozen=True)
class ListDrivers(Command):
    kind: ClassVar[CommandKind] = CommandKind.LIST_DRIVERS


@dataclass(frozen=True)
class ListRiders(Command):
    kind: ClassVar[CommandKind] = CommandKind.LIST_RIDERS


@dataclass(frozen=True)
class RecordAdjustment(Command):
    kind: ClassVar[CommandKind] = CommandKind.RECORD_ADJUSTMENT

    rider_id: str
    delta: int
    note: str


@dataclass(frozen=True)
class SetAvailability(Command):
    kind: ClassVar[CommandKind] = CommandKind.SET_AVAILABILITY

    start: date
    end: date
    is_open: bool
    note: str
    capacity: Optional[int] = None


@dataclass(frozen=True)
class ShowHelp(Command):
    kind: ClassVar[CommandKind] = CommandKind.SHOW_HELP


@dataclass(frozen=True)
class Echo(Command):
    kind: ClassVar[CommandKind] = CommandKind.ECHO

    text: str
