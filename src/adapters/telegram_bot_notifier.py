"""Telegram Bot API notification adapter.

Uses the Bot API for delivery, which is the only way to answer from the
stateless webhook worker.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Optional

from adapters.notification_formatting import format_notice
from core.ports import Notice

API_BASE = "https://api.telegram.org"


def call_bot_api(bot_token: str, method: str, payload: dict, timeout: int = 10) -> dict:
    """POST a Bot API method and return the decoded response."""

    data = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(f"{API_BASE}/bot{bot_token}/{method}", data=data, method="POST")
    request.add_header("Content-Type", "application/json")
    # A blocking call is fine here: replies are small and best-effort.
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"Bot API error {e.code}: {body}") from e


def set_webhook(bot_token: str, url: str, secret_token: Optional[str]) -> dict:
    payload = {
        "url": url,
        "allowed_updates": ["message", "edited_message", "channel_post", "edited_channel_post"],
    }
    if secret_token:
        payload["secret_token"] = secret_token
    return call_bot_api(bot_token, "setWebhook", payload)


class TelegramBotNotifier:
    """Notifier adapter that replies via the Telegram Bot API."""

    def __init__(self, bot_token: str) -> None:
        self._bot_token = bot_token

    async def send(self, notice: Notice) -> None:
        """Send the formatted reply via the Bot API."""

        payload = {
            "chat_id": notice.chat_id,
            "text": format_notice(notice, mode="markdown"),
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": True,
        }
        if notice.reply_to is not None:
            payload["reply_parameters"] = {
                "message_id": notice.reply_to,
                "allow_sending_without_reply": True,
            }
        call_bot_api(self._bot_token, "sendMessage", payload)
