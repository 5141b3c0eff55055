"""Telethon-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline. Telethon
entity offsets are UTF-16 based, exactly like the Bot API ones.
"""

from __future__ import annotations

from typing import List, Optional

from telethon import utils
from telethon.tl import types
from telethon.tl.custom import Message

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

_ENTITY_KINDS = {
    types.MessageEntityBold: EntityKind.BOLD,
    types.MessageEntityItalic: EntityKind.ITALIC,
    types.MessageEntityUnderline: EntityKind.UNDERLINE,
    types.MessageEntityStrike: EntityKind.STRIKETHROUGH,
    types.MessageEntitySpoiler: EntityKind.SPOILER,
    types.MessageEntityCode: EntityKind.CODE,
    types.MessageEntityPre: EntityKind.PRE,
    types.MessageEntityTextUrl: EntityKind.TEXT_LINK,
    types.MessageEntityMentionName: EntityKind.TEXT_MENTION,
    types.MessageEntityBlockquote: EntityKind.BLOCKQUOTE,
}

_DEFAULT_FILE_NAMES = {
    "sticker": "sticker",
    "audio": "audio",
    "voice": "voice_message.ogg",
    "video": "video",
    "animation": "animation",
    "document": "document",
}


def annotations_from_entities(entities) -> List[Annotation]:
    annotations: List[Annotation] = []
    for entity in entities or []:
        kind = _ENTITY_KINDS.get(type(entity))
        if kind is None:
            continue
        if kind is EntityKind.BLOCKQUOTE and getattr(entity, "collapsed", False):
            kind = EntityKind.EXPANDABLE_BLOCKQUOTE
        annotations.append(
            Annotation(
                kind=kind,
                offset=entity.offset,
                length=entity.length,
                url=getattr(entity, "url", None),
                user_id=getattr(entity, "user_id", None),
                language=getattr(entity, "language", None) or None,
            )
        )
    return annotations


def _chat_kind(message: Message) -> ChatKind:
    if message.is_private:
        return ChatKind.PRIVATE
    if message.is_channel and not message.is_group:
        return ChatKind.CHANNEL
    return ChatKind.GROUP


def _permalink(message: Message) -> str:
    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    # Prefer public usernames for permalinks when available.
    if isinstance(username, str) and username:
        return f"https://t.me/{username}/{message.id}"
    return f"https://t.me/c/{internal_chat_id(message.chat_id)}/{message.id}"


def _media_type(message: Message) -> Optional[str]:
    if message.photo:
        return "photo"
    if message.sticker:
        return "sticker"
    if message.voice:
        return "voice"
    if message.audio:
        return "audio"
    if message.gif:
        return "animation"
    if message.video:
        return "video"
    if message.document:
        return "document"
    return None


def extract_media(message: Message) -> Optional[MediaRef]:
    media_type = _media_type(message)
    file = message.file
    if media_type is None or file is None:
        return None

    sticker = media_type == "sticker"
    if media_type == "photo":
        file_name = None
    elif media_type in ("sticker", "voice"):
        file_name = _DEFAULT_FILE_NAMES[media_type]
    else:
        file_name = file.name or file.title or _DEFAULT_FILE_NAMES[media_type]

    return MediaRef(
        type=media_type,
        file_id=file.id,
        file_name=file_name,
        file_size=file.size or 0,
        mime_type=file.mime_type,
        duration=file.duration,
        width=file.width,
        height=file.height,
        telegram_link=_permalink(message),
        emoji=file.emoji if sticker else None,
        is_animated=sticker and file.mime_type == "application/x-tgsticker",
        is_video=sticker and file.mime_type == "video/webm",
    )


def _forward_origin(message: Message) -> Optional[ForwardOrigin]:
    header = getattr(message, "fwd_from", None)
    if header is None:
        return None

    # Telethon resolves the forwarded entities when they came with the update.
    forward = getattr(message, "forward", None)
    peer = getattr(header, "from_id", None)
    if isinstance(peer, types.PeerUser):
        user = getattr(forward, "sender", None)
        return ForwardOrigin(
            kind="user",
            id=peer.user_id,
            name=getattr(user, "first_name", None),
            username=getattr(user, "username", None),
        )
    if isinstance(peer, (types.PeerChannel, types.PeerChat)):
        chat = getattr(forward, "chat", None)
        return ForwardOrigin(
            kind="chat",
            id=utils.get_peer_id(peer),
            name=getattr(chat, "title", None),
            username=getattr(chat, "username", None),
        )
    if getattr(header, "from_name", None):
        return ForwardOrigin(kind="hidden", name=header.from_name)
    return None


async def build_part(message: Message) -> InboundPart:
    """Build a core InboundPart from a Telethon Message."""

    kind = _chat_kind(message)
    chat = getattr(message, "chat", None)

    sender = None
    if kind is ChatKind.PRIVATE:
        user = await message.get_sender()
        sender = Actor(
            id=message.sender_id,
            first_name=getattr(user, "first_name", None),
            username=getattr(user, "username", None),
        )

    return InboundPart(
        chat=ChatInfo(
            id=message.chat_id,
            kind=kind,
            title=getattr(chat, "title", None) or getattr(chat, "first_name", None),
            username=getattr(chat, "username", None),
        ),
        message_id=message.id,
        date=message.date,
        text=message.raw_text or "",
        annotations=annotations_from_entities(message.entities),
        media=extract_media(message),
        album_id=str(message.grouped_id) if message.grouped_id else None,
        sender=sender,
        forward=_forward_origin(message),
    )


async def build_update(message: Message, edited: bool = False) -> InboundUpdate:
    kind = UpdateKind.EDITED if edited else UpdateKind.NEW
    return InboundUpdate(kind=kind, part=await build_part(message))
