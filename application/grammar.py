from __future__ import annotations

import re
from datetime import date
from typing import Callable, Dict, List, Optional

from domain.commands import (
    BindDriver,
    Command,
    Echo,
    ListDrivers,
    ListRiders,
    QueryFare,
    RecordAdjustment,
    SetAvailability,
    SetRole,
    ShowHelp,
    TransferFare,
)
from domain.errors import (
    MalformedAdjustment,
    MalformedAmount,
    MalformedAvailability,
    MalformedBind,
    ParseError,
    RemarkTooLong,
)
from domain.models import Role

RIDER_LITERAL = "我是乘客"
DRIVER_LITERAL = "我是司機"
SUPPORT_LITERAL = "77"
HELP_LITERALS = ("help", "幫助")

TRANSFER_FARE_KEYWORD = "車費匯款"
BIND_DRIVER_KEYWORD = "綁定司機"
AVAILABILITY_KEYWORD = "開車"
ADJUSTMENT_KEYWORD = "備註"
DATE_RANGE_SEPARATOR = "~"

REMARK_LIMIT = 30
# Largest value the INTEGER columns of both stores can hold.
MAX_AMOUNT = 2_147_483_647

ROLE_LITERALS: Dict[str, Role] = {
    RIDER_LITERAL: Role.RIDER,
    DRIVER_LITERAL: Role.DRIVER,
}

_LITERAL_COMMANDS: Dict[str, Command] = {
    RIDER_LITERAL: SetRole(Role.RIDER),
    DRIVER_LITERAL: SetRole(Role.DRIVER),
    "查詢車費": QueryFare(),
    "司機列表": ListDrivers(),
    "乘客列表": ListRiders(),
}

_SEP = r"\s*[:：]\s*"

_TRANSFER_FARE_RE = re.compile(rf"^(?:{TRANSFER_FARE_KEYWORD}{_SEP})?([1-9][0-9]*)$")
_BIND_DRIVER_RE = re.compile(rf"^{BIND_DRIVER_KEYWORD}{_SEP}(.*)$")
_ADJUSTMENT_RE = re.compile(
    r"^([A-Za-z0-9]+)\s*[:：]?\s*([+-])([0-9]+)\s*備註\s*[:：]?\s*(.*)$"
)
_AVAILABILITY_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})\s*~\s*(\d{4}-\d{2}-\d{2})"
    rf"{_SEP}(開車|不開車)\s*備註{_SEP}(.*?)"
    rf"(?:\s*乘客數量{_SEP}([0-9]+))?$"
)


def normalize(text: str) -> str:
    return (text or "").strip()


def role_for_literal(text: str) -> Optional[Role]:
    """Return the role a role-selection literal asks for, if `text` is one."""

    return ROLE_LITERALS.get(normalize(text))


def is_help_literal(text: str) -> bool:
    return normalize(text).lower() in HELP_LITERALS


def parse_transfer_fare(text: str) -> TransferFare:
    """
    Parse `車費匯款:<amount>` (the label is optional).

    The amount must be a positive integer without a leading zero, no
    larger than `MAX_AMOUNT`, and nothing may follow it.
    """

    match = _TRANSFER_FARE_RE.match(normalize(text))
    if not match:
        raise MalformedAmount(text)
    amount = int(match.group(1))
    if amount > MAX_AMOUNT:
        raise MalformedAmount(text)
    return TransferFare(amount=amount)


def parse_bind_driver(text: str) -> BindDriver:
    match = _BIND_DRIVER_RE.match(normalize(text))
    if not match:
        raise MalformedBind(text)
    driver_id = match.group(1).strip()
    if not driver_id:
        raise MalformedBind(text)
    return BindDriver(driver_id=driver_id)


def parse_adjustment(text: str) -> RecordAdjustment:
    """
    Parse `<riderId>:<+|-><amount> 備註:<remark>`.

    The sign is mandatory and the amount may not be zero or exceed
    `MAX_AMOUNT`. Remarks longer than `REMARK_LIMIT` characters are
    rejected, not truncated.
    """

    match = _ADJUSTMENT_RE.match(normalize(text))
    if not match:
        raise MalformedAdjustment(text)

    rider_id, sign, digits, remark = match.groups()
    magnitude = int(digits)
    if magnitude == 0 or magnitude > MAX_AMOUNT:
        raise MalformedAdjustment(text)

    remark = remark.strip()
    if len(remark) > REMARK_LIMIT:
        raise RemarkTooLong(text, REMARK_LIMIT)

    delta = magnitude if sign == "+" else -magnitude
    return RecordAdjustment(rider_id=rider_id, delta=delta, note=remark)


def _parse_date(value: str, text: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise MalformedAvailability(text) from None


def parse_availability(text: str) -> SetAvailability:
    """Parse `<start>~<end>:<開車|不開車> 備註:<note> [乘客數量:<n>]`."""

    match = _AVAILABILITY_RE.match(normalize(text))
    if not match:
        raise MalformedAvailability(text)

    start_raw, end_raw, mode, note, capacity_raw = match.groups()
    capacity = int(capacity_raw) if capacity_raw is not None else None
    if capacity is not None and not 0 < capacity <= MAX_AMOUNT:
        raise MalformedAvailability(text)

    return SetAvailability(
        start=_parse_date(start_raw, text),
        end=_parse_date(end_raw, text),
        is_open=mode == "開車",
        note=note.strip(),
        capacity=capacity,
    )


_STRICT_PARSERS: List[Callable[[str], Command]] = [
    parse_transfer_fare,
    parse_bind_driver,
    parse_availability,
    parse_adjustment,
]


def parse_command(text: str) -> Command:
    """
    Turn raw message text into a `Command`, independent of role.

    Literal commands are matched first, then the strict grammars. Text
    that matches nothing becomes `Echo`; this function never raises.
    """

    stripped = normalize(text)

    literal = _LITERAL_COMMANDS.get(stripped)
    if literal is None and is_help_literal(stripped):
        literal = ShowHelp()
    if literal is not None:
        return literal

    for parser in _STRICT_PARSERS:
        try:
            return parser(stripped)
        except ParseError:
            continue

    return Echo(text=text)
