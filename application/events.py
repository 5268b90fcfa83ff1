from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from domain.messaging import InboundEvent, Messenger, ProfileProvider
from domain.repositories import LedgerStore

from . import messages
from .router import dispatch
from .services import ExternalContext

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one webhook delivery: HTTP status plus per-event results."""

    status_code: int
    results: List[Optional[Dict[str, Any]]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def handle_event(
    event: InboundEvent,
    messenger: Messenger,
    profiles: ProfileProvider,
    store: LedgerStore,
    today: date,
    provider: str = "line",
) -> Optional[Dict[str, Any]]:
    """
    Process one inbound event and send its single reply.

    Returns None for events that are acknowledged without a reply.
    """

    if not event.is_text_message:
        return None

    profile = profiles.get_profile(event.user_id)
    external_ctx = ExternalContext(
        provider=provider,
        provider_user_id=profile.user_id,
        display_name=profile.display_name,
    )

    reply = dispatch(external_ctx, event.text or "", store, today)
    messenger.reply(event.reply_token, reply)
    return {"replyToken": event.reply_token, "text": reply}


def handle_events(
    events: List[InboundEvent],
    messenger: Messenger,
    profiles: ProfileProvider,
    store: LedgerStore,
    clock: Callable[[], date] = date.today,
    provider: str = "line",
) -> BatchResult:
    """
    Process every event of one delivery independently.

    A failing event never stops its siblings. If any event failed, a single
    busy reply is sent with the first event's reply token and the batch is
    reported as a server error.
    """

    today = clock()
    results: List[Optional[Dict[str, Any]]] = []
    failed = False

    for index, event in enumerate(events):
        try:
            results.append(handle_event(event, messenger, profiles, store, today, provider))
        except Exception:
            failed = True
            logger.exception(
                "Event %d failed (type=%s, user=%s, text=%r)",
                index,
                event.type,
                event.user_id,
                event.text,
            )
            results.append(None)

    if not failed:
        return BatchResult(status_code=200, results=results)

    first_token = events[0].reply_token if events else None
    if first_token:
        try:
            messenger.reply(first_token, messages.BUSY)
        except Exception:
            logger.exception("Could not send busy reply to %s", first_token)

    return BatchResult(status_code=500, results=results)
