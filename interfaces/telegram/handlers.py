from __future__ import annotations

import logging
from datetime import date
from typing import Callable

import telebot

from application.events import handle_events
from domain.messaging import InboundEvent, Profile, ProfileProvider
from domain.repositories import LedgerStore

logger = logging.getLogger(__name__)


class TelegramReplier:
    """
    Sends replies through the bot; the chat ID is the reply handle.

    Updates arrive through polling, so only the reply half of `Messenger`
    is needed.
    """

    def __init__(self, bot: telebot.TeleBot) -> None:
        self._bot = bot

    def reply(self, reply_token: str, text: str) -> None:
        self._bot.send_message(reply_token, text)


class MessageProfile(ProfileProvider):
    """Profile taken from the Telegram message itself; no extra API call."""

    def __init__(self, message) -> None:
        self._message = message

    def get_profile(self, user_id: str) -> Profile:
        sender = self._message.from_user
        name = " ".join(part for part in (sender.first_name, sender.last_name) if part)
        return Profile(user_id=user_id, display_name=name or sender.username or user_id)


def to_inbound_event(message) -> InboundEvent:
    """Extract a channel-agnostic event from a Telegram message."""

    return InboundEvent(
        type="message",
        message_type=message.content_type,
        text=message.text,
        user_id=str(message.from_user.id),
        reply_token=str(message.chat.id),
    )


def create_telegram_bot(
    bot_token: str,
    store: LedgerStore,
    clock: Callable[[], date] = date.today,
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    Every text message runs through the same classification and dispatch
    as the LINE webhook and gets exactly one reply.
    """

    bot = telebot.TeleBot(bot_token)
    replier = TelegramReplier(bot)

    @bot.message_handler(commands=["start"])
    def handle_start(message):
        bot.send_message(
            message.chat.id,
            "歡迎使用車費記帳機器人！\n請輸入「我是乘客」或「我是司機」開始使用。",
        )

    @bot.message_handler(content_types=["text"])
    def handle_text(message):
        result = handle_events(
            [to_inbound_event(message)],
            replier,
            MessageProfile(message),
            store,
            clock=clock,
            provider="telegram",
        )
        if not result.ok:
            logger.warning("Telegram message from %s failed", message.from_user.id)

    return bot
