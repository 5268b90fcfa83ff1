import unittest
from types import SimpleNamespace

from interfaces.telegram.handlers import MessageProfile, TelegramReplier, to_inbound_event


def telegram_message(text="查詢車費", first_name="Amy", last_name=None, username="amy"):
    return SimpleNamespace(
        content_type="text",
        text=text,
        chat=SimpleNamespace(id=4242),
        from_user=SimpleNamespace(
            id=777,
            first_name=first_name,
            last_name=last_name,
            username=username,
        ),
    )


class TelegramAdapterTests(unittest.TestCase):
    def test_message_becomes_text_event_keyed_by_chat(self):
        event = to_inbound_event(telegram_message())
        self.assertTrue(event.is_text_message)
        self.assertEqual(event.user_id, "777")
        self.assertEqual(event.reply_token, "4242")
        self.assertEqual(event.text, "查詢車費")

    def test_profile_uses_sender_names(self):
        profile = MessageProfile(telegram_message(last_name="Lin")).get_profile("777")
        self.assertEqual(profile.display_name, "Amy Lin")

        profile = MessageProfile(telegram_message(first_name=None)).get_profile("777")
        self.assertEqual(profile.display_name, "amy")

    def test_replier_sends_to_chat(self):
        sent = []
        bot = SimpleNamespace(send_message=lambda chat_id, text: sent.append((chat_id, text)))
        TelegramReplier(bot).reply("4242", "hi")
        self.assertEqual(sent, [("4242", "hi")])


if __name__ == "__main__":
    unittest.main()
