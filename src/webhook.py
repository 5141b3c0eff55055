"""Webhook entry point.

Telegram posts one update per HTTP call. Each call builds a fresh processor
around the shared stores, handles the update, and answers. Deferred album
checks are attached to the response as background tasks, so they run after
Telegram already has its answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from adapters.bot_api_mapper import parse_update
from adapters.scheduler import BackgroundTasksScheduler
from core.config import IngestConfig
from core.ports import AccessPort, BatchStorePort, NotifierPort, RecordStorePort
from core.processor import IngestionProcessor

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookDependencies:
    """Long-lived collaborators shared by every request."""

    records: RecordStorePort
    batches: BatchStorePort
    access: AccessPort
    notifier: NotifierPort
    config: IngestConfig
    secret: str = ""


def create_app(deps: WebhookDependencies, path: str = "/telegram/webhook") -> FastAPI:
    app = FastAPI(title="tagstash webhook")

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True}

    @app.post(path)
    async def telegram_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
    ):
        if deps.secret and x_telegram_bot_api_secret_token != deps.secret:
            LOGGER.warning("Rejected webhook call with a wrong secret token")
            return JSONResponse({"ok": False, "error": "forbidden"}, status_code=403)

        try:
            payload = await request.json()
            update = parse_update(payload)
        except (ValueError, KeyError, TypeError, AttributeError):
            LOGGER.warning("Rejected undecodable webhook payload")
            return JSONResponse({"ok": False, "error": "bad request"}, status_code=400)

        if update is None:
            return {"ok": True}

        processor = IngestionProcessor(
            records=deps.records,
            batches=deps.batches,
            access=deps.access,
            notifier=deps.notifier,
            scheduler=BackgroundTasksScheduler(background_tasks),
            config=deps.config,
        )
        try:
            await processor.handle(update)
        except Exception:
            # A 5xx makes Telegram redeliver; stored standalone parts are skipped then.
            LOGGER.exception("Error while processing update %s", payload.get("update_id"))
            return JSONResponse({"ok": False, "error": "internal error"}, status_code=500)
        return {"ok": True}

    return app
