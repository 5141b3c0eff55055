"""Bot API update-to-core mapping adapter.

Converts the JSON envelopes Telegram posts to the webhook into core models,
keeping Bot API field names out of the core pipeline.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from core.access import internal_chat_id
from core.models import (
    Actor,
    Annotation,
    ChatInfo,
    ChatKind,
    EntityKind,
    ForwardOrigin,
    InboundPart,
    InboundUpdate,
    MediaRef,
    UpdateKind,
)

LOGGER = logging.getLogger(__name__)

# Order matters: an update carries exactly one of these fields.
UPDATE_FIELDS = (
    ("message", UpdateKind.NEW),
    ("channel_post", UpdateKind.NEW),
    ("edited_message", UpdateKind.EDITED),
    ("edited_channel_post", UpdateKind.EDITED),
)

# Animations also carry a "document" field, so they are checked first.
MEDIA_FIELDS = ("photo", "sticker", "audio", "voice", "video", "animation", "document")

_DEFAULT_FILE_NAMES = {
    "sticker": "sticker",
    "audio": "audio",
    "voice": "voice_message.ogg",
    "video": "video",
    "animation": "animation",
    "document": "document",
}


def parse_update(update: dict) -> Optional[InboundUpdate]:
    """Return the core update for a Bot API update, or None if unsupported."""

    for field, kind in UPDATE_FIELDS:
        message = update.get(field)
        if message:
            return InboundUpdate(kind=kind, part=build_part(message))
    LOGGER.debug("Ignoring update %s without a message", update.get("update_id"))
    return None


def _chat_kind(chat_type: Optional[str]) -> ChatKind:
    if chat_type == "private":
        return ChatKind.PRIVATE
    if chat_type == "channel":
        return ChatKind.CHANNEL
    return ChatKind.GROUP


def parse_entities(entities: Optional[List[dict]]) -> List[Annotation]:
    """Map Bot API entities; kinds without markup are dropped."""

    annotations: List[Annotation] = []
    for entity in entities or []:
        try:
            kind = EntityKind(entity.get("type"))
        except ValueError:
            continue
        user = entity.get("user") or {}
        annotations.append(
            Annotation(
                kind=kind,
                offset=int(entity.get("offset", 0)),
                length=int(entity.get("length", 0)),
                url=entity.get("url"),
                user_id=user.get("id"),
                language=entity.get("language"),
            )
        )
    return annotations


def message_link(chat: dict, message_id: int) -> str:
    username = chat.get("username")
    if username:
        return f"https://t.me/{username}/{message_id}"
    return f"https://t.me/c/{internal_chat_id(int(chat['id']))}/{message_id}"


def extract_media(message: dict) -> Optional[MediaRef]:
    """Return the single media item of a message, if it has one."""

    media_type = next((field for field in MEDIA_FIELDS if message.get(field)), None)
    if media_type is None:
        return None

    info: dict[str, Any]
    if media_type == "photo":
        # A photo arrives as several sizes; keep the largest one.
        info = max(message["photo"], key=lambda size: size.get("file_size") or 0)
        file_name = None
    else:
        info = message[media_type]
        if media_type in ("sticker", "voice"):
            file_name = _DEFAULT_FILE_NAMES[media_type]
        else:
            file_name = info.get("file_name") or info.get("title") or _DEFAULT_FILE_NAMES[media_type]

    thumbnail = info.get("thumbnail") or info.get("thumb")
    sticker = media_type == "sticker"
    return MediaRef(
        type=media_type,
        file_id=info["file_id"],
        file_name=file_name,
        file_size=info.get("file_size") or 0,
        mime_type=info.get("mime_type"),
        duration=info.get("duration"),
        width=info.get("width"),
        height=info.get("height"),
        telegram_link=message_link(message["chat"], message["message_id"]),
        emoji=info.get("emoji") if sticker else None,
        is_animated=bool(info.get("is_animated")) if sticker else False,
        is_video=bool(info.get("is_video")) if sticker else False,
        thumbnail=thumbnail.get("file_id") if thumbnail else None,
    )


def _forward_from_origin(origin: dict) -> Optional[ForwardOrigin]:
    origin_type = origin.get("type")
    if origin_type == "user":
        user = origin.get("sender_user") or {}
        return ForwardOrigin(kind="user", id=user.get("id"), name=user.get("first_name"), username=user.get("username"))
    if origin_type == "hidden_user":
        return ForwardOrigin(kind="hidden", name=origin.get("sender_user_name"))
    if origin_type in ("chat", "channel"):
        chat = origin.get("sender_chat") or origin.get("chat") or {}
        return ForwardOrigin(kind="chat", id=chat.get("id"), name=chat.get("title"), username=chat.get("username"))
    return None


def extract_forward(message: dict) -> Optional[ForwardOrigin]:
    """Forward attribution: legacy fields first, then forward_origin."""

    user = message.get("forward_from")
    if user:
        return ForwardOrigin(kind="user", id=user.get("id"), name=user.get("first_name"), username=user.get("username"))
    chat = message.get("forward_from_chat")
    if chat:
        return ForwardOrigin(kind="chat", id=chat.get("id"), name=chat.get("title"), username=chat.get("username"))
    hidden_name = message.get("forward_sender_name")
    if hidden_name:
        return ForwardOrigin(kind="hidden", name=hidden_name)
    origin = message.get("forward_origin")
    if origin:
        return _forward_from_origin(origin)
    return None


def build_part(message: dict) -> InboundPart:
    """Build an InboundPart from a Bot API Message object."""

    chat = message["chat"]
    kind = _chat_kind(chat.get("type"))
    sender = message.get("from")
    text = message.get("text") or message.get("caption") or ""
    entities = message.get("entities") or message.get("caption_entities")

    return InboundPart(
        chat=ChatInfo(
            id=int(chat["id"]),
            kind=kind,
            title=chat.get("title") or chat.get("first_name"),
            username=chat.get("username"),
        ),
        message_id=int(message["message_id"]),
        date=datetime.fromtimestamp(int(message.get("date", 0)), tz=timezone.utc),
        text=text,
        annotations=parse_entities(entities),
        media=extract_media(message),
        album_id=message.get("media_group_id"),
        sender=Actor(id=int(sender["id"]), first_name=sender.get("first_name"), username=sender.get("username"))
        if sender
        else None,
        forward=extract_forward(message),
    )
