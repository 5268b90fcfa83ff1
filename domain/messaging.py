from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol


@dataclass
class InboundEvent:
    """
    One webhook event as delivered by the chat channel.

    Only text message events are processed; everything else is
    acknowledged without a reply.
    """

    type: str
    message_type: Optional[str]
    text: Optional[str]
    user_id: Optional[str]
    reply_token: Optional[str]

    @property
    def is_text_message(self) -> bool:
        return self.type == "message" and self.message_type == "text"


@dataclass
class Profile:
    user_id: str
    display_name: str


class Messenger(Protocol):
    """Transport that delivers events to us and carries our replies back."""

    def verify_and_parse(self, body: bytes, signature: str) -> List[InboundEvent]:
        """Verify the request signature and return the events it carries."""

        ...

    def reply(self, reply_token: str, text: str) -> None:
        """Send a single text message using a reply handle."""

        ...


class ProfileProvider(Protocol):
    def get_profile(self, user_id: str) -> Profile:
        ...
