"""Allow-list checks for senders and channels."""

from __future__ import annotations

from core.config import AccessConfig
from core.models import ChatKind, InboundPart

CHANNEL_MARKER = "-100"


def chat_id_variants(raw_chat_id: int) -> set[str]:
    """Return equivalent chat id spellings (marked channel id, bare id)."""

    variants: set[str] = {str(raw_chat_id)}
    raw_text = str(raw_chat_id)
    if raw_text.startswith(CHANNEL_MARKER):
        # Channel/supergroup peer id: -100<channel_id>
        channel_part = raw_text[len(CHANNEL_MARKER):]
        if channel_part.isdigit():
            variants.add(channel_part)
    elif raw_chat_id > 0:
        variants.add(f"{CHANNEL_MARKER}{raw_chat_id}")
    return variants


def is_allowed(part: InboundPart, access: AccessConfig) -> bool:
    """Private chats are checked by sender id, channels by chat id."""

    if part.chat.kind is ChatKind.PRIVATE:
        if part.sender is None:
            return False
        return str(part.sender.id) in access.allowed_users
    if part.chat.kind is ChatKind.CHANNEL:
        return bool(chat_id_variants(part.chat.id) & access.allowed_channels)
    return False


def internal_chat_id(chat_id: int) -> str:
    """Chat id as used in t.me/c/ links (channel marker stripped)."""

    raw_text = str(chat_id)
    if raw_text.startswith(CHANNEL_MARKER):
        return raw_text[len(CHANNEL_MARKER):]
    return str(abs(chat_id))
