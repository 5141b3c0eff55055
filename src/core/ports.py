"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, configuration, notification
and scheduling adapters so that the core can be reused with different
backends. Nothing in the core keeps state between updates; everything shared
goes through these ports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple

from core.config import AccessConfig
from core.models import AlbumBatch, ContentRecord, InboundPart


class AlbumClosedError(Exception):
    """Raised when a part is appended to an album that is already finalized."""


class RecordIdConflict(Exception):
    """Raised by a record store when the record id is already taken."""


class BatchStorePort(Protocol):
    """TTL-bounded media-group batches, keyed by album id."""

    def get(self, album_id: str) -> Optional[AlbumBatch]:
        ...

    def put(self, album_id: str, batch: AlbumBatch, ttl: int) -> None:
        """Replace the whole batch. The collector only uses the atomic calls below."""
        ...

    def delete(self, album_id: str) -> None:
        ...

    def append_part(self, album_id: str, part: InboundPart, first_seen_at: float, ttl: int) -> Optional[int]:
        """Atomically add a part; return the part count, or None for a duplicate.

        Raises AlbumClosedError when the album is already finalized.
        """
        ...

    def mark_finalized(self, album_id: str, ttl: int) -> bool:
        """Atomically flip finalized; return True only for the first caller."""
        ...


class RecordStorePort(Protocol):
    """Persistence for content records and their tag index."""

    def add(self, record: ContentRecord) -> None:
        """Insert a new record; raises RecordIdConflict if the id exists."""
        ...

    def update(self, record: ContentRecord) -> None:
        ...

    def find_by_origin(self, chat_id: int, message_id: int) -> Optional[ContentRecord]:
        ...

    def count(self) -> int:
        ...

    def list_tags(self) -> List[str]:
        ...


class AccessPort(Protocol):
    """Source of the allow-lists, read once per update."""

    def get_access(self) -> AccessConfig:
        ...


class NoticeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    EMPTY = "empty"
    HELP = "help"


@dataclass(frozen=True)
class Notice:
    """A reply to send back to a private chat."""

    kind: NoticeKind
    chat_id: int
    reply_to: Optional[int]
    record: Optional[ContentRecord] = None
    preview_chars: int = 80
    total_records: int = 0
    known_tags: Tuple[str, ...] = ()


class NotifierPort(Protocol):
    """Best-effort reply delivery."""

    async def send(self, notice: Notice) -> None:
        ...


class SchedulerPort(Protocol):
    """Runs a callback after a delay, detached from the current update."""

    def defer(self, delay: float, callback: Callable[[], Awaitable[object]]) -> None:
        ...
