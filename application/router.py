from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from domain.commands import (
    BindDriver,
    Command,
    CommandKind,
    RecordAdjustment,
    SetAvailability,
    TransferFare,
)
from domain.errors import DomainRejection, LookupFailure, ParseError
from domain.models import Role, User
from domain.repositories import LedgerStore

from . import messages
from .availability import set_availability
from .grammar import (
    ADJUSTMENT_KEYWORD,
    AVAILABILITY_KEYWORD,
    BIND_DRIVER_KEYWORD,
    DATE_RANGE_SEPARATOR,
    TRANSFER_FARE_KEYWORD,
    is_help_literal,
    parse_adjustment,
    parse_availability,
    parse_bind_driver,
    parse_command,
    parse_transfer_fare,
)
from .identity import ClassificationKind, classify
from .services import (
    ExternalContext,
    bind_driver,
    fare_income,
    fare_search,
    list_drivers,
    list_riders,
    record_adjustment,
    register_user,
    transfer_fare,
)

logger = logging.getLogger(__name__)


@dataclass
class CommandRequest:
    """
    Everything a handler needs for one event.

    `command` is None when the handler was reached through the loose
    keyword fallback; the handler then strictly parses `text` itself.
    """

    user: User
    text: str
    command: Optional[Command]
    store: LedgerStore
    today: date


Handler = Callable[[CommandRequest], str]


def _parsed(request: CommandRequest, kind: type, parser: Callable[[str], Command]):
    if isinstance(request.command, kind):
        return request.command
    return parser(request.text)


def _handle_bind_driver(request: CommandRequest) -> str:
    command: BindDriver = _parsed(request, BindDriver, parse_bind_driver)
    driver = bind_driver(request.user, command.driver_id, request.store.users)
    return messages.bound(driver)


def _handle_transfer_fare(request: CommandRequest) -> str:
    command: TransferFare = _parsed(request, TransferFare, parse_transfer_fare)
    payment = transfer_fare(request.user, command.amount, request.store.payments, request.today)
    return messages.payment_recorded(payment)


def _handle_fare_search(request: CommandRequest) -> str:
    statement = fare_search(
        request.user,
        request.store.payments,
        request.store.adjustments,
        request.today,
    )
    return messages.fare_statement(statement)


def _handle_list_drivers(request: CommandRequest) -> str:
    drivers = list_drivers(request.store.users)
    return messages.driver_list(drivers, request.user.bound_driver_id)


def _handle_fare_income(request: CommandRequest) -> str:
    report = fare_income(
        request.user,
        request.store.users,
        request.store.payments,
        request.store.adjustments,
        request.today,
    )
    return messages.income_report(report)


def _handle_list_riders(request: CommandRequest) -> str:
    return messages.rider_list(list_riders(request.user, request.store.users))


def _handle_record_adjustment(request: CommandRequest) -> str:
    command: RecordAdjustment = _parsed(request, RecordAdjustment, parse_adjustment)
    rider, adjustment = record_adjustment(
        request.user,
        command.rider_id,
        command.delta,
        command.note,
        request.store.users,
        request.store.adjustments,
        request.today,
    )
    return messages.adjustment_recorded(rider, adjustment)


def _handle_set_availability(request: CommandRequest) -> str:
    command: SetAvailability = _parsed(request, SetAvailability, parse_availability)
    result = set_availability(request.user, command, request.store.availability, request.today)
    return messages.availability_saved(result)


def _handle_help(request: CommandRequest) -> str:
    return messages.help_text(request.user.role)


ROLE_COMMANDS: Dict[Role, Dict[CommandKind, Handler]] = {
    Role.RIDER: {
        CommandKind.BIND_DRIVER: _handle_bind_driver,
        CommandKind.TRANSFER_FARE: _handle_transfer_fare,
        CommandKind.QUERY_FARE: _handle_fare_search,
        CommandKind.LIST_DRIVERS: _handle_list_drivers,
        CommandKind.SHOW_HELP: _handle_help,
    },
    Role.DRIVER: {
        CommandKind.QUERY_FARE: _handle_fare_income,
        CommandKind.LIST_RIDERS: _handle_list_riders,
        CommandKind.RECORD_ADJUSTMENT: _handle_record_adjustment,
        CommandKind.SET_AVAILABILITY: _handle_set_availability,
        CommandKind.SHOW_HELP: _handle_help,
    },
}

# Checked in order. Availability text also contains the adjustment keyword,
# so its date-range separator is tested first; a remark may mention 開車.
LOOSE_KEYWORDS: Dict[Role, List[Tuple[str, CommandKind]]] = {
    Role.RIDER: [
        (TRANSFER_FARE_KEYWORD, CommandKind.TRANSFER_FARE),
        (BIND_DRIVER_KEYWORD, CommandKind.BIND_DRIVER),
    ],
    Role.DRIVER: [
        (DATE_RANGE_SEPARATOR, CommandKind.SET_AVAILABILITY),
        (ADJUSTMENT_KEYWORD, CommandKind.RECORD_ADJUSTMENT),
        (AVAILABILITY_KEYWORD, CommandKind.SET_AVAILABILITY),
    ],
}


def route(
    user: User,
    text: str,
    command: Command,
    store: LedgerStore,
    today: date,
) -> str:
    """
    Run the handler an existing user's text selects.

    Precedence: exact command for the user's role, then loose keyword
    fallback, then the help literal, then a generic welcome-back reply.
    """

    table = ROLE_COMMANDS.get(user.role, {})

    handler = table.get(command.kind)
    if handler is not None:
        return handler(CommandRequest(user, text, command, store, today))

    for keyword, kind in LOOSE_KEYWORDS.get(user.role, []):
        if keyword in text:
            return table[kind](CommandRequest(user, text, None, store, today))

    if is_help_literal(text):
        return messages.help_text(user.role)

    return messages.welcome_back(user, text)


def _handle_existing_user(user: User, text: str, store: LedgerStore, today: date) -> str:
    command = parse_command(text)

    if user.is_rider and not user.bound_driver_id and command.kind is not CommandKind.BIND_DRIVER:
        return messages.bind_gate(list_drivers(store.users))

    try:
        return route(user, text, command, store, today)
    except ParseError as exc:
        return messages.parse_error(exc)
    except (DomainRejection, LookupFailure) as exc:
        logger.info("Rejected %s from %s: %s", command.kind.value, user.external_id, exc)
        return messages.rejection(exc)


def dispatch(
    external_ctx: ExternalContext,
    text: str,
    store: LedgerStore,
    today: date,
) -> str:
    """
    Classify the sender, run at most one handler, and return the reply text.

    Every path produces exactly one reply. `StoreFailure` propagates to the
    caller.
    """

    text = text.strip()
    user = store.users.get_user(external_ctx.provider_user_id)
    classification = classify(text, user)

    if classification.kind is ClassificationKind.NEW_USER:
        new_user = register_user(external_ctx, classification.desired_role, store.users)
        logger.info(
            "Registered %s %s as %s",
            external_ctx.provider,
            new_user.external_id,
            new_user.role.value,
        )
        if new_user.is_rider:
            return messages.new_rider(new_user, list_drivers(store.users))
        return messages.new_driver(new_user)

    if classification.kind is ClassificationKind.ROLE_MISMATCH:
        return messages.ROLE_MISMATCH

    if classification.kind is ClassificationKind.SUPPORT_REQUEST:
        logger.info("Support requested by %s", external_ctx.provider_user_id)
        return messages.SUPPORT

    if classification.kind is ClassificationKind.EXISTING_USER:
        return _handle_existing_user(classification.user, text, store, today)

    return messages.UNRECOGNIZED
