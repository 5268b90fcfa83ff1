import logging

import uvicorn

from infrastructure.config.settings import get_settings
from infrastructure.db.factory import build_ledger_store
from infrastructure.line.messaging_api import LineMessagingClient
from interfaces.line.webhook import create_line_app


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def main() -> None:
    settings = get_settings()
    if not settings.line_channel_access_token or not settings.line_channel_secret:
        raise RuntimeError(
            "LINE_CHANNEL_ACCESS_TOKEN and LINE_CHANNEL_SECRET environment variables must be set."
        )

    store = build_ledger_store(settings)
    client = LineMessagingClient(
        settings.line_channel_access_token,
        settings.line_channel_secret,
    )

    app = create_line_app(client, client, store, clock=settings.today)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
