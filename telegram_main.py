import logging

from infrastructure.config.settings import get_settings
from infrastructure.db.factory import build_ledger_store
from interfaces.telegram.handlers import create_telegram_bot


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def main() -> None:
    settings = get_settings()
    if not settings.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    store = build_ledger_store(settings)
    bot = create_telegram_bot(settings.telegram_token, store, clock=settings.today)
    bot.infinity_polling()


if __name__ == "__main__":
    main()
