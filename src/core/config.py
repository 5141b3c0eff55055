"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class AlbumConfig:
    """Media-group batching settings."""

    ttl_seconds: int = 60
    finalize_delay_seconds: float = 2.0
    max_size: int = 10


@dataclass(frozen=True)
class TagDefaults:
    """Fallback tags used when a message carries no hashtags."""

    private: str = "inbox"
    channel: str = "channel"
    album: str = "media"


@dataclass(frozen=True)
class IngestConfig:
    """Settings consumed by the ingestion processor."""

    album: AlbumConfig = field(default_factory=AlbumConfig)
    tags: TagDefaults = field(default_factory=TagDefaults)
    preview_chars: int = 80
    timezone: Optional[tzinfo] = None


@dataclass(frozen=True)
class AccessConfig:
    """Allow-lists, stored as normalized id strings."""

    allowed_users: FrozenSet[str] = frozenset()
    allowed_channels: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "allowed_users": sorted(self.allowed_users),
            "allowed_channels": sorted(self.allowed_channels),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccessConfig":
        return cls(
            allowed_users=_normalize_ids(data.get("allowed_users")),
            allowed_channels=_normalize_ids(data.get("allowed_channels")),
        )


def _normalize_ids(raw) -> FrozenSet[str]:
    """Accept a list of ids or the comma-separated form used by older configs."""

    if not raw:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(",")
    return frozenset(str(item).strip() for item in raw if str(item).strip())
