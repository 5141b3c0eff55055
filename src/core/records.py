"""Content record construction (core domain).

A record is built from one standalone part or from the sorted parts of an
album. The first part supplies the text; every part supplies its media.
"""

from __future__ import annotations

import random
import string
from datetime import datetime
from typing import List, Optional, Sequence

from core.config import IngestConfig
from core.entities import render
from core.models import (
    ChatKind,
    ContentRecord,
    InboundPart,
    MediaField,
    OriginRef,
    RenderMode,
    SourceInfo,
)
from core.tags import channel_tag, extract_tags, unique

SOURCE_CHANNEL = "telegram_channel"
SOURCE_FORWARD = "telegram_forward"
SOURCE_DIRECT = "telegram"

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_record_id(now: datetime) -> str:
    """Timestamp-prefixed id, e.g. 20240101120000-k3x9."""

    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(4))
    return f"{now.strftime('%Y%m%d%H%M%S')}-{suffix}"


def render_body(part: InboundPart) -> str:
    return render(part.text, part.annotations, RenderMode.STANDARD)


def build_source_info(part: InboundPart) -> Optional[SourceInfo]:
    """Attribute a part by priority: forwarded user, forwarded chat, hidden
    forward name, then the channel or user that sent it."""

    chat = part.chat
    if chat.kind is ChatKind.CHANNEL:
        return SourceInfo(
            kind="channel",
            channel_id=str(chat.id),
            channel_title=chat.title,
            channel_username=chat.username,
        )

    forward = part.forward
    if forward is not None:
        if forward.kind in ("user", "chat"):
            # Forwarded chats are attributed like users, with the title as name.
            return SourceInfo(
                kind="forward",
                user_id=str(forward.id),
                first_name=forward.name or "Unknown",
                username=forward.username,
            )
        if forward.kind == "hidden":
            return SourceInfo(kind="forward", user_id="hidden", first_name=forward.name)

    if part.sender is not None:
        return SourceInfo(
            kind="user",
            user_id=str(part.sender.id),
            first_name=part.sender.first_name,
            username=part.sender.username,
        )
    return None


def source_kind_for(part: InboundPart) -> str:
    if part.chat.kind is ChatKind.CHANNEL:
        return SOURCE_CHANNEL
    if part.forward is not None:
        return SOURCE_FORWARD
    return SOURCE_DIRECT


def resolve_tags(part: InboundPart, config: IngestConfig, album: bool) -> List[str]:
    """Hashtags of the part, or the default tag, plus the channel tag."""

    tags = extract_tags(part.text)
    if not tags:
        if part.chat.kind is ChatKind.CHANNEL:
            tags = [config.tags.channel]
        elif album:
            tags = [config.tags.album]
        else:
            tags = [config.tags.private]

    if part.chat.kind is ChatKind.CHANNEL:
        derived = channel_tag(part.chat.title)
        if derived:
            tags.append(derived)
    return unique(tags)


def build_record(
    parts: Sequence[InboundPart],
    config: IngestConfig,
    now: datetime,
    album: bool = False,
) -> ContentRecord:
    """Build a record from parts already sorted by message id."""

    if not parts:
        raise ValueError("Cannot build a record without parts")

    first = parts[0]
    media: MediaField
    if album:
        media = [part.media for part in parts if part.media is not None]
    else:
        media = first.media

    origin = OriginRef(
        chat_id=first.chat.id,
        message_id=first.message_id,
        chat_type=first.chat.kind.value,
        channel_title=first.chat.title if first.chat.kind is ChatKind.CHANNEL else None,
        media_group_id=first.album_id,
    )

    return ContentRecord(
        id=generate_record_id(now),
        tags=resolve_tags(first, config, album),
        body=render_body(first),
        source_kind=source_kind_for(first),
        source_info=build_source_info(first),
        origin=origin,
        media=media,
        created_at=now,
    )
