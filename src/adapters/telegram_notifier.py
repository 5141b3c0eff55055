"""Telegram notification adapter for the Telethon bot client.

Formats an HTML reply and sends it through the connected client.
"""

from __future__ import annotations

from adapters.notification_formatting import format_notice
from core.ports import Notice


class TelethonNotifier:
    """Notifier adapter that replies through a Telethon client."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, notice: Notice) -> None:
        """Send the formatted reply to the originating chat."""

        message = format_notice(notice, mode="html")
        await self._client.send_message(
            notice.chat_id,
            message,
            parse_mode="html",
            reply_to=notice.reply_to,
            link_preview=False,
        )
