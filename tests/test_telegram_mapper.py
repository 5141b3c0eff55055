from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from telethon.tl import types

from adapters.telegram_mapper import annotations_from_entities, build_update, extract_media
from core.models import ChatKind, EntityKind, UpdateKind


class DummyChat:
    def __init__(self, title: "str | None" = None, username: "str | None" = None, first_name: "str | None" = None) -> None:
        self.title = title
        self.username = username
        self.first_name = first_name


class DummyUser:
    def __init__(self, first_name: str, username: "str | None" = None) -> None:
        self.first_name = first_name
        self.username = username


class DummyFile:
    def __init__(self, file_id: str, **extra) -> None:
        self.id = file_id
        self.name = extra.get("name")
        self.title = extra.get("title")
        self.size = extra.get("size")
        self.mime_type = extra.get("mime_type")
        self.duration = extra.get("duration")
        self.width = extra.get("width")
        self.height = extra.get("height")
        self.emoji = extra.get("emoji")


class DummyFwdHeader:
    def __init__(self, from_id=None, from_name: "str | None" = None) -> None:
        self.from_id = from_id
        self.from_name = from_name


class DummyForward:
    def __init__(self, sender=None, chat=None) -> None:
        self.sender = sender
        self.chat = chat


class DummyMessage:
    def __init__(
        self,
        *,
        chat_id: int,
        message_id: int,
        text: str = "",
        chat: "DummyChat | None" = None,
        private: bool = False,
        channel: bool = False,
        group: bool = False,
        entities=None,
        grouped_id: "int | None" = None,
        sender: "DummyUser | None" = None,
        media_kind: "str | None" = None,
        file: "DummyFile | None" = None,
        fwd_from=None,
        forward=None,
    ) -> None:
        self.chat_id = chat_id
        self.id = message_id
        self.raw_text = text
        self.chat = chat
        self.is_private = private
        self.is_channel = channel
        self.is_group = group
        self.entities = entities
        self.grouped_id = grouped_id
        self.sender_id = chat_id if private else None
        self._sender = sender
        self.date = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for kind in ("photo", "sticker", "voice", "audio", "gif", "video", "document"):
            setattr(self, kind, kind == media_kind)
        self.file = file
        self.fwd_from = fwd_from
        self.forward = forward

    async def get_sender(self):
        return self._sender


def test_annotations_from_telethon_entities() -> None:
    annotations = annotations_from_entities(
        [
            types.MessageEntityBold(offset=0, length=4),
            types.MessageEntityTextUrl(offset=5, length=3, url="https://x.io"),
            types.MessageEntityPre(offset=9, length=2, language=""),
            types.MessageEntityMentionName(offset=12, length=3, user_id=42),
            types.MessageEntityHashtag(offset=16, length=4),
        ]
    )

    assert [annotation.kind for annotation in annotations] == [
        EntityKind.BOLD,
        EntityKind.TEXT_LINK,
        EntityKind.PRE,
        EntityKind.TEXT_MENTION,
    ]
    assert annotations[1].url == "https://x.io"
    assert annotations[2].language is None
    assert annotations[3].user_id == 42


def test_build_update_for_private_message() -> None:
    message = DummyMessage(
        chat_id=111,
        message_id=7,
        text="bold text",
        chat=DummyChat(first_name="Ann", username="ann"),
        private=True,
        entities=[types.MessageEntityBold(offset=0, length=4)],
        sender=DummyUser("Ann", "ann"),
    )

    update = asyncio.run(build_update(message))

    assert update.kind is UpdateKind.NEW
    part = update.part
    assert part.chat.kind is ChatKind.PRIVATE
    assert part.chat.title == "Ann"
    assert part.sender.id == 111
    assert part.sender.username == "ann"
    assert part.annotations[0].kind is EntityKind.BOLD
    assert part.media is None
    assert part.forward is None


def test_build_update_for_channel_album_part() -> None:
    message = DummyMessage(
        chat_id=-1001234,
        message_id=3,
        text="caption",
        chat=DummyChat(title="Tech Feed"),
        channel=True,
        grouped_id=987654321,
        media_kind="photo",
        file=DummyFile("photo-id", size=1000, width=800, height=600),
    )

    update = asyncio.run(build_update(message, edited=True))

    assert update.kind is UpdateKind.EDITED
    part = update.part
    assert part.chat.kind is ChatKind.CHANNEL
    assert part.sender is None
    assert part.album_id == "987654321"
    assert part.media.type == "photo"
    assert part.media.file_name is None
    assert part.media.telegram_link == "https://t.me/c/1234/3"


def test_megagroup_is_a_group() -> None:
    message = DummyMessage(chat_id=-1005, message_id=1, channel=True, group=True)

    update = asyncio.run(build_update(message))

    assert update.part.chat.kind is ChatKind.GROUP


def test_extract_media_for_voice_and_gif() -> None:
    voice = extract_media(
        DummyMessage(chat_id=1, message_id=1, media_kind="voice", file=DummyFile("v", mime_type="audio/ogg", duration=4))
    )
    gif = extract_media(
        DummyMessage(chat_id=1, message_id=2, media_kind="gif", file=DummyFile("g", name="cat.mp4"))
    )

    assert (voice.type, voice.file_name, voice.duration) == ("voice", "voice_message.ogg", 4)
    assert (gif.type, gif.file_name) == ("animation", "cat.mp4")


def test_forward_from_channel_uses_marked_peer_id() -> None:
    message = DummyMessage(
        chat_id=111,
        message_id=1,
        private=True,
        sender=DummyUser("Ann"),
        fwd_from=DummyFwdHeader(from_id=types.PeerChannel(channel_id=1234)),
        forward=DummyForward(chat=DummyChat(title="Other", username="other")),
    )

    part = asyncio.run(build_update(message)).part

    assert part.forward.kind == "chat"
    assert part.forward.id == -1000000001234
    assert part.forward.name == "Other"


def test_hidden_forward_keeps_only_name() -> None:
    message = DummyMessage(
        chat_id=111,
        message_id=1,
        private=True,
        sender=DummyUser("Ann"),
        fwd_from=DummyFwdHeader(from_name="Secret"),
    )

    part = asyncio.run(build_update(message)).part

    assert (part.forward.kind, part.forward.name, part.forward.id) == ("hidden", "Secret", None)
