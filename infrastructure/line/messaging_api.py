from __future__ import annotations

import logging
from typing import List, Optional

from linebot.v3 import WebhookParser
from linebot.v3.exceptions import InvalidSignatureError
from linebot.v3.messaging import (
    ApiClient,
    Configuration,
    MessagingApi,
    ReplyMessageRequest,
    TextMessage,
)

from domain.messaging import InboundEvent, Messenger, Profile, ProfileProvider

logger = logging.getLogger(__name__)


def to_inbound_event(event) -> InboundEvent:
    """Flatten an SDK webhook event into the fields the bot reads."""

    message = getattr(event, "message", None)
    source = getattr(event, "source", None)
    return InboundEvent(
        type=event.type,
        message_type=getattr(message, "type", None),
        text=getattr(message, "text", None),
        user_id=getattr(source, "user_id", None),
        reply_token=getattr(event, "reply_token", None),
    )


class LineMessagingClient(Messenger, ProfileProvider):
    """
    LINE Messaging API adapter built on the official SDK.

    Webhook bodies are checked and parsed by `WebhookParser`; a bad
    signature raises `InvalidSignatureError`. Reply and profile calls go
    through `MessagingApi`, whose errors propagate so the batch handler
    can report them.
    """

    def __init__(
        self,
        channel_access_token: str,
        channel_secret: str,
        api: Optional[MessagingApi] = None,
    ) -> None:
        self._parser = WebhookParser(channel_secret)
        self._api_client: Optional[ApiClient] = None
        if api is None:
            self._api_client = ApiClient(Configuration(access_token=channel_access_token))
            api = MessagingApi(self._api_client)
        self._api = api

    def verify_and_parse(self, body: bytes, signature: str) -> List[InboundEvent]:
        try:
            events = self._parser.parse(body.decode("utf-8"), signature)
        except (ValueError, KeyError) as exc:
            raise InvalidSignatureError(f"Unreadable webhook body: {exc}") from exc
        return [to_inbound_event(event) for event in events]

    def reply(self, reply_token: str, text: str) -> None:
        self._api.reply_message(
            ReplyMessageRequest(reply_token=reply_token, messages=[TextMessage(text=text)])
        )

    def get_profile(self, user_id: str) -> Profile:
        profile = self._api.get_profile(user_id)
        return Profile(user_id=profile.user_id, display_name=profile.display_name or "")

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
