"""Core domain models.

These dataclasses are shared by the core and the adapters; none of them
reference Bot API JSON or Telethon objects.
Everything that crosses the batch store is serializable to plain dicts.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Union


class EntityKind(str, Enum):
    """Rich-text annotation kinds, named after the Bot API entity types."""

    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKETHROUGH = "strikethrough"
    SPOILER = "spoiler"
    CODE = "code"
    PRE = "pre"
    TEXT_LINK = "text_link"
    TEXT_MENTION = "text_mention"
    BLOCKQUOTE = "blockquote"
    EXPANDABLE_BLOCKQUOTE = "expandable_blockquote"


class RenderMode(str, Enum):
    """Output flavour of the entity renderer."""

    STANDARD = "std"
    PLATFORM = "tg"


class ChatKind(str, Enum):
    PRIVATE = "private"
    CHANNEL = "channel"
    GROUP = "group"


class UpdateKind(str, Enum):
    NEW = "new"
    EDITED = "edited"


@dataclass(frozen=True)
class Annotation:
    """A half-open [offset, offset + length) span in UTF-16 code units."""

    kind: EntityKind
    offset: int
    length: int
    url: Optional[str] = None
    user_id: Optional[int] = None
    language: Optional[str] = None

    @property
    def start(self) -> int:
        return self.offset

    @property
    def end(self) -> int:
        return self.offset + self.length

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Annotation":
        return cls(
            kind=EntityKind(data["kind"]),
            offset=int(data["offset"]),
            length=int(data["length"]),
            url=data.get("url"),
            user_id=data.get("user_id"),
            language=data.get("language"),
        )


@dataclass(frozen=True)
class MediaRef:
    """Reference to a platform-hosted file; the bytes are never copied."""

    type: str
    file_id: str
    file_name: Optional[str] = None
    file_size: int = 0
    mime_type: Optional[str] = None
    duration: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    telegram_link: Optional[str] = None
    emoji: Optional[str] = None
    is_animated: bool = False
    is_video: bool = False
    thumbnail: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "MediaRef":
        return cls(**data)


@dataclass(frozen=True)
class ChatInfo:
    id: int
    kind: ChatKind
    title: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class Actor:
    """The user that sent a private message."""

    id: int
    first_name: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class ForwardOrigin:
    """Where a forwarded message came from.

    kind is "user", "chat" or "hidden" (sender hid their account, only a name
    is known).
    """

    kind: str
    id: Optional[int] = None
    name: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class InboundPart:
    """One physically delivered message or channel post."""

    chat: ChatInfo
    message_id: int
    date: datetime
    text: str = ""
    annotations: List[Annotation] = field(default_factory=list)
    media: Optional[MediaRef] = None
    album_id: Optional[str] = None
    sender: Optional[Actor] = None
    forward: Optional[ForwardOrigin] = None

    def to_dict(self) -> dict:
        return {
            "chat": {
                "id": self.chat.id,
                "kind": self.chat.kind.value,
                "title": self.chat.title,
                "username": self.chat.username,
            },
            "message_id": self.message_id,
            "date": self.date.isoformat(),
            "text": self.text,
            "annotations": [annotation.to_dict() for annotation in self.annotations],
            "media": self.media.to_dict() if self.media else None,
            "album_id": self.album_id,
            "sender": asdict(self.sender) if self.sender else None,
            "forward": asdict(self.forward) if self.forward else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InboundPart":
        chat = data["chat"]
        return cls(
            chat=ChatInfo(
                id=int(chat["id"]),
                kind=ChatKind(chat["kind"]),
                title=chat.get("title"),
                username=chat.get("username"),
            ),
            message_id=int(data["message_id"]),
            date=datetime.fromisoformat(data["date"]),
            text=data.get("text") or "",
            annotations=[Annotation.from_dict(item) for item in data.get("annotations") or []],
            media=MediaRef.from_dict(data["media"]) if data.get("media") else None,
            album_id=data.get("album_id"),
            sender=Actor(**data["sender"]) if data.get("sender") else None,
            forward=ForwardOrigin(**data["forward"]) if data.get("forward") else None,
        )


@dataclass(frozen=True)
class InboundUpdate:
    kind: UpdateKind
    part: InboundPart


@dataclass
class AlbumBatch:
    """Parts collected so far for one media group."""

    album_id: str
    parts: List[InboundPart] = field(default_factory=list)
    first_seen_at: float = 0.0
    finalized: bool = False


@dataclass(frozen=True)
class OriginRef:
    """Link from a record back to the message it was built from."""

    chat_id: int
    message_id: int
    chat_type: str
    channel_title: Optional[str] = None
    media_group_id: Optional[str] = None


@dataclass(frozen=True)
class SourceInfo:
    """Human-facing attribution of a record."""

    kind: str
    user_id: Optional[str] = None
    first_name: Optional[str] = None
    username: Optional[str] = None
    channel_id: Optional[str] = None
    channel_title: Optional[str] = None
    channel_username: Optional[str] = None


MediaField = Union[None, MediaRef, List[MediaRef]]


@dataclass(frozen=True)
class ContentRecord:
    """A normalized, taggable content item."""

    id: str
    tags: List[str]
    body: str
    source_kind: str
    source_info: Optional[SourceInfo]
    origin: Optional[OriginRef]
    media: MediaField
    created_at: datetime
    updated_at: Optional[datetime] = None
    edited: bool = False

    def with_edit(self, tags: List[str], body: str, updated_at: datetime) -> "ContentRecord":
        return replace(self, tags=list(tags), body=body, updated_at=updated_at, edited=True)


def media_to_json(media: MediaField) -> Any:
    if media is None:
        return None
    if isinstance(media, list):
        return [item.to_dict() for item in media]
    return media.to_dict()


def media_from_json(data: Any) -> MediaField:
    if data is None:
        return None
    if isinstance(data, list):
        return [MediaRef.from_dict(item) for item in data]
    return MediaRef.from_dict(data)
