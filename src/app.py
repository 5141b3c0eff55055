"""Application entry point for tagstash."""

from __future__ import annotations

import argparse
import logging
import os
import re
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from art import tprint
from telethon import events

import settings
from adapters.redis_store import RedisAccessStore, RedisAlbumBatchStore, build_redis
from adapters.scheduler import AsyncioScheduler
from adapters.sqlite_storage import SQLiteRecordStore
from adapters.telegram_bot_notifier import TelegramBotNotifier, set_webhook
from adapters.telegram_mapper import build_update
from adapters.telegram_notifier import TelethonNotifier
from client import build_client, start_bot
from core.processor import IngestionProcessor
from webhook import WebhookDependencies, create_app

NAME = "TAGSTASH"
FONT = "tarty-1"

# Bot API URLs carry the token: https://api.telegram.org/bot<token>/method
_BOT_URL_TOKEN_RE = re.compile(r"(/bot)\d+:[\w-]+")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks secrets and any Bot API token embedded in a URL."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        text = _BOT_URL_TOKEN_RE.sub(r"\1***", super().format(record))
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text


def _redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {})
    if not redact_cfg.get("enabled", True):
        return []
    values = {settings.BOT_TOKEN, settings.WEBHOOK_SECRET}
    values.update(os.getenv(name, "") for name in redact_cfg.get("patterns", []))
    # Longest first so a secret containing another is masked whole.
    return sorted((value for value in values if value), key=len, reverse=True)


def _rotating_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/tagstash.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(
        _redaction_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_rotating_handler(file_cfg))
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # uvicorn access lines would repeat every webhook call.
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.WARNING))


def _require_bot_token() -> str:
    if not settings.BOT_TOKEN:
        raise RuntimeError("Missing BOT_TOKEN in environment")
    return settings.BOT_TOKEN


def _build_record_store() -> SQLiteRecordStore:
    directory = os.path.dirname(settings.DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)
    storage = SQLiteRecordStore(settings.DB_PATH)
    storage.init_db()
    return storage


def _build_redis_stores() -> tuple[RedisAlbumBatchStore, RedisAccessStore]:
    redis_client = build_redis(settings.REDIS_URL)
    return (
        RedisAlbumBatchStore(redis_client, settings.REDIS_PREFIX),
        RedisAccessStore(redis_client, settings.ACCESS, settings.REDIS_PREFIX),
    )


def _serve() -> None:
    """Run the webhook server."""

    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    bot_token = _require_bot_token()
    if not settings.WEBHOOK_SECRET:
        logger.warning("WEBHOOK_SECRET is not set; webhook calls are not authenticated")

    batches, access = _build_redis_stores()
    deps = WebhookDependencies(
        records=_build_record_store(),
        batches=batches,
        access=access,
        notifier=TelegramBotNotifier(bot_token),
        config=settings.INGEST,
        secret=settings.WEBHOOK_SECRET,
    )
    logger.info("Serving webhook on %s:%s%s", settings.WEBHOOK_HOST, settings.WEBHOOK_PORT, settings.WEBHOOK_PATH)
    uvicorn.run(
        create_app(deps, path=settings.WEBHOOK_PATH),
        host=settings.WEBHOOK_HOST,
        port=settings.WEBHOOK_PORT,
        log_config=None,
    )


async def _dispatch(processor: IngestionProcessor, message, edited: bool) -> None:
    logger = logging.getLogger(__name__)
    try:
        update = await build_update(message, edited=edited)
        await processor.handle(update)
    except Exception:
        logger.exception("Error while processing %s message %s", "edited" if edited else "new", message.id)


def _run() -> None:
    """Run the Telethon bot client instead of the webhook."""

    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    bot_token = _require_bot_token()
    client = build_client()
    batches, access = _build_redis_stores()
    processor = IngestionProcessor(
        records=_build_record_store(),
        batches=batches,
        access=access,
        notifier=TelethonNotifier(client),
        scheduler=AsyncioScheduler(),
        config=settings.INGEST,
    )

    @client.on(events.NewMessage(incoming=True))
    async def on_new(event) -> None:
        await _dispatch(processor, event.message, edited=False)

    @client.on(events.MessageEdited(incoming=True))
    async def on_edit(event) -> None:
        await _dispatch(processor, event.message, edited=True)

    start_bot(client, bot_token)
    logger.info("Listening for messages and channel posts...")
    client.run_until_disconnected()


def _set_webhook() -> None:
    _configure_logging()
    logger = logging.getLogger(__name__)
    if not settings.WEBHOOK_PUBLIC_URL:
        raise RuntimeError("webhook.public_url is required in config.json")
    url = settings.WEBHOOK_PUBLIC_URL.rstrip("/") + settings.WEBHOOK_PATH
    result = set_webhook(_require_bot_token(), url, settings.WEBHOOK_SECRET or None)
    if not result.get("ok"):
        raise RuntimeError(f"setWebhook failed: {result.get('description')}")
    logger.info("Webhook set to %s", url)


def _sync_access() -> None:
    """Publish the config.json allow-lists to Redis."""

    _configure_logging()
    _, access = _build_redis_stores()
    access.save_access(settings.ACCESS)
    logging.getLogger(__name__).info(
        "Access lists synced: %s user(s), %s channel(s)",
        len(settings.ACCESS.allowed_users),
        len(settings.ACCESS.allowed_channels),
    )


COMMANDS = {
    "serve": ("Start the webhook server (default)", _serve),
    "run": ("Start the Telethon bot client", _run),
    "set-webhook": ("Register the webhook URL with Telegram", _set_webhook),
    "sync-access": ("Copy allow-lists from config.json to Redis", _sync_access),
}


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="tagstash", description="Telegram to tagged records")
    subparsers = parser.add_subparsers(dest="command")
    for name, (help_text, _) in COMMANDS.items():
        subparsers.add_parser(name, help=help_text)

    args = parser.parse_args(argv)
    _, command = COMMANDS[args.command or "serve"]
    command()


if __name__ == "__main__":
    main()
