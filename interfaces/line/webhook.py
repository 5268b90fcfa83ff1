from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from linebot.v3.exceptions import InvalidSignatureError

from application.events import handle_events
from domain.messaging import Messenger, ProfileProvider
from domain.repositories import LedgerStore

logger = logging.getLogger(__name__)


def create_line_app(
    messenger: Messenger,
    profiles: ProfileProvider,
    store: LedgerStore,
    clock: Callable[[], date] = date.today,
) -> FastAPI:
    """
    Configure and return the FastAPI app serving the LINE webhook.

    This module contains only HTTP concerns: reading the raw body for
    signature checks and turning the batch outcome into a status code.
    """

    app = FastAPI(title="Fare Ledger Bot", docs_url=None, redoc_url=None)

    @app.get("/healthcheck", response_class=PlainTextResponse)
    def healthcheck() -> str:
        return "OK"

    @app.post("/callback")
    async def callback(request: Request):
        body = await request.body()
        signature = request.headers.get("X-Line-Signature", "")

        try:
            events = messenger.verify_and_parse(body, signature)
        except InvalidSignatureError as exc:
            logger.warning("Rejected webhook: %s", exc)
            return PlainTextResponse("Invalid signature", status_code=400)

        # Store and LINE calls block; keep them off the event loop.
        result = await run_in_threadpool(
            handle_events, events, messenger, profiles, store, clock
        )
        if not result.ok:
            return PlainTextResponse(status_code=result.status_code)
        return JSONResponse(result.results, status_code=result.status_code)

    return app
