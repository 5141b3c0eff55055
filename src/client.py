"""Telethon bot client for the long-lived transport.

The client signs in with the bot token, so the .session file only caches the
bot authorization and entity hashes; there is no user login step.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION = "tagstash-bot"


def read_api_credentials() -> Tuple[int, str]:
    """Return (API_ID, API_HASH) from the environment or .env."""

    load_dotenv()
    api_id = os.getenv("API_ID", "").strip()
    api_hash = os.getenv("API_HASH", "").strip()
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    if not api_id.isdigit():
        raise RuntimeError("API_ID must be numeric")
    return int(api_id), api_hash


def build_client(session_name: Optional[str] = None) -> TelegramClient:
    api_id, api_hash = read_api_credentials()
    session = session_name or os.getenv("SESSION_NAME") or DEFAULT_SESSION
    LOGGER.info("Initializing Telegram bot client (session %s)", session)
    return TelegramClient(session, api_id, api_hash)


def start_bot(client: TelegramClient, bot_token: str) -> TelegramClient:
    """Connect and authorize as the bot; returns the started client."""

    if not bot_token:
        raise RuntimeError("Missing BOT_TOKEN in environment")
    client.start(bot_token=bot_token)
    LOGGER.info("Bot client authorized")
    return client
