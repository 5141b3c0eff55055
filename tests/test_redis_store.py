from __future__ import annotations

from datetime import datetime, timezone

import pytest
import redis

from adapters.redis_store import (
    APPEND_PART_SCRIPT,
    MARK_FINALIZED_SCRIPT,
    RedisAccessStore,
    RedisAlbumBatchStore,
)
from core.config import AccessConfig
from core.models import AlbumBatch, Annotation, ChatInfo, ChatKind, EntityKind, InboundPart, MediaRef
from core.ports import AlbumClosedError


class FakeRedis:
    """In-memory subset of the redis-py client used by the adapters."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.strings: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def hgetall(self, key: str) -> dict:
        return dict(self.hashes.get(key, {}))

    def hkeys(self, key: str) -> list:
        return list(self.hashes.get(key, {}))

    def hsetnx(self, key: str, field: str, value: str) -> int:
        fields = self.hashes.setdefault(key, {})
        if field in fields:
            return 0
        fields[field] = value
        return 1

    def hset(self, key: str, mapping: dict) -> int:
        self.hashes.setdefault(key, {}).update(mapping)
        return len(mapping)

    def expire(self, key: str, ttl: int) -> bool:
        self.ttls[key] = ttl
        return key in self.hashes or key in self.strings

    def delete(self, key: str) -> int:
        removed = int(key in self.hashes or key in self.strings)
        self.hashes.pop(key, None)
        self.strings.pop(key, None)
        return removed

    def get(self, key: str):
        return self.strings.get(key)

    def set(self, key: str, value: str) -> bool:
        self.strings[key] = value
        return True

    def pipeline(self) -> "FakePipeline":
        return FakePipeline(self)

    def register_script(self, script: str):
        scripts = {APPEND_PART_SCRIPT: self._append_part, MARK_FINALIZED_SCRIPT: self._mark_finalized}
        return scripts[script]

    def _append_part(self, keys: list, args: list) -> int:
        key = keys[0]
        first_field, first_seen, part_field, payload, finalized_field, ttl, prefix = args
        if finalized_field in self.hashes.get(key, {}):
            return -1
        self.hsetnx(key, first_field, first_seen)
        added = self.hsetnx(key, part_field, payload)
        self.expire(key, ttl)
        if not added:
            return 0
        return sum(1 for field in self.hashes[key] if field.startswith(prefix))

    def _mark_finalized(self, keys: list, args: list) -> int:
        key = keys[0]
        if key not in self.hashes:
            return 0
        finalized_field, ttl = args
        claimed = self.hsetnx(key, finalized_field, "1")
        self.expire(key, ttl)
        return claimed



class FakePipeline:
    def __init__(self, client: FakeRedis) -> None:
        self._client = client
        self._calls: list = []

    def __getattr__(self, name: str):
        def queue(*args, **kwargs):
            self._calls.append((name, args, kwargs))
            return self

        return queue

    def execute(self) -> list:
        return [getattr(self._client, name)(*args, **kwargs) for name, args, kwargs in self._calls]


class BrokenRedis(FakeRedis):
    def get(self, key: str):
        raise redis.ConnectionError("connection refused")


def _part(message_id: int) -> InboundPart:
    return InboundPart(
        chat=ChatInfo(id=-1009, kind=ChatKind.CHANNEL, title="Tech Feed"),
        message_id=message_id,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        text="caption #tag",
        annotations=[Annotation(kind=EntityKind.BOLD, offset=0, length=7)],
        media=MediaRef(type="photo", file_id=f"p{message_id}", width=10, height=10),
        album_id="g1",
    )


def test_append_part_counts_and_ignores_duplicates() -> None:
    client = FakeRedis()
    store = RedisAlbumBatchStore(client, prefix="t:")

    assert store.append_part("g1", _part(2), 100.0, 60) == 1
    assert store.append_part("g1", _part(1), 101.0, 60) == 2
    assert store.append_part("g1", _part(2), 102.0, 60) is None

    batch = store.get("g1")
    assert [part.message_id for part in batch.parts] == [1, 2]
    assert batch.parts[0] == _part(1)
    assert batch.first_seen_at == 100.0
    assert not batch.finalized
    assert client.ttls["t:media_group:g1"] == 60


def test_mark_finalized_succeeds_once() -> None:
    store = RedisAlbumBatchStore(FakeRedis())
    store.append_part("g1", _part(1), 100.0, 60)

    assert store.mark_finalized("g1", 60)
    assert not store.mark_finalized("g1", 60)
    assert store.get("g1").finalized


def test_append_after_finalize_is_refused() -> None:
    store = RedisAlbumBatchStore(FakeRedis())
    store.append_part("g1", _part(1), 100.0, 60)
    store.mark_finalized("g1", 60)

    with pytest.raises(AlbumClosedError):
        store.append_part("g1", _part(2), 101.0, 60)

    assert [part.message_id for part in store.get("g1").parts] == [1]


def test_mark_finalized_does_not_recreate_deleted_batch() -> None:
    client = FakeRedis()
    store = RedisAlbumBatchStore(client)

    assert not store.mark_finalized("g1", 60)
    assert store.get("g1") is None
    assert store.append_part("g1", _part(1), 100.0, 60) == 1


def test_put_replaces_batch_and_delete_removes_it() -> None:
    store = RedisAlbumBatchStore(FakeRedis())
    store.append_part("g1", _part(1), 100.0, 60)

    store.put("g1", AlbumBatch(album_id="g1", parts=[_part(5)], first_seen_at=50.0, finalized=True), 30)

    batch = store.get("g1")
    assert [part.message_id for part in batch.parts] == [5]
    assert batch.finalized

    store.delete("g1")
    assert store.get("g1") is None


def test_access_store_reads_saved_lists() -> None:
    client = FakeRedis()
    fallback = AccessConfig.from_dict({"allowed_users": ["1"]})
    store = RedisAccessStore(client, fallback, prefix="t:")

    assert store.get_access() == fallback

    store.save_access(AccessConfig.from_dict({"allowed_users": ["2", "3"], "allowed_channels": ["-1009"]}))

    access = store.get_access()
    assert access.allowed_users == frozenset({"2", "3"})
    assert access.allowed_channels == frozenset({"-1009"})
    assert "t:bot_config" in client.strings


def test_access_store_falls_back_when_redis_is_down() -> None:
    fallback = AccessConfig.from_dict({"allowed_users": ["1"]})
    store = RedisAccessStore(BrokenRedis(), fallback)

    assert store.get_access() == fallback
