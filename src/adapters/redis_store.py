"""Redis adapters for the shared, short-lived state.

Album batches and the access lists live in Redis so every execution context
(webhook worker or Telethon client) sees the same state. Each album is one
hash:

- first_seen_at: epoch seconds of the first part
- part:<message_id>: JSON of the inbound part
- finalized: present once a finalizer has claimed the album

Appending and claiming run as Lua scripts so each is one atomic step. An
append fails once finalized is set, which keeps a late part out of a batch
that is already being turned into a record. HSETNX on a part field makes
appends idempotent, HSETNX on finalized is the compare-and-set that lets
exactly one caller finalize. Every write refreshes the key TTL.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis

from core.config import AccessConfig
from core.models import AlbumBatch, InboundPart
from core.ports import AlbumClosedError

LOGGER = logging.getLogger(__name__)

FIRST_SEEN_FIELD = "first_seen_at"
FINALIZED_FIELD = "finalized"
PART_PREFIX = "part:"

# Returns -1 once the album is finalized, 0 for a part already present,
# otherwise the part count after the append.
APPEND_PART_SCRIPT = """
if redis.call('HEXISTS', KEYS[1], ARGV[5]) == 1 then
  return -1
end
redis.call('HSETNX', KEYS[1], ARGV[1], ARGV[2])
local added = redis.call('HSETNX', KEYS[1], ARGV[3], ARGV[4])
redis.call('EXPIRE', KEYS[1], ARGV[6])
if added == 0 then
  return 0
end
local count = 0
for _, field in ipairs(redis.call('HKEYS', KEYS[1])) do
  if string.sub(field, 1, string.len(ARGV[7])) == ARGV[7] then
    count = count + 1
  end
end
return count
"""

# Claims an existing album; a missing key is never recreated.
MARK_FINALIZED_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
local claimed = redis.call('HSETNX', KEYS[1], ARGV[1], '1')
redis.call('EXPIRE', KEYS[1], ARGV[2])
return claimed
"""


def build_redis(url: str) -> redis.Redis:
    """Create a Redis client that returns str values."""

    return redis.Redis.from_url(url, decode_responses=True)


class RedisAlbumBatchStore:
    """BatchStorePort backed by one Redis hash per album."""

    def __init__(self, client: redis.Redis, prefix: str = "tagstash:") -> None:
        self._client = client
        self._prefix = prefix
        self._append_part = client.register_script(APPEND_PART_SCRIPT)
        self._mark_finalized = client.register_script(MARK_FINALIZED_SCRIPT)

    def _key(self, album_id: str) -> str:
        return f"{self._prefix}media_group:{album_id}"

    def get(self, album_id: str) -> Optional[AlbumBatch]:
        data = self._client.hgetall(self._key(album_id))
        if not data:
            return None
        parts = [
            InboundPart.from_dict(json.loads(value))
            for field, value in data.items()
            if field.startswith(PART_PREFIX)
        ]
        parts.sort(key=lambda part: part.message_id)
        return AlbumBatch(
            album_id=album_id,
            parts=parts,
            first_seen_at=float(data.get(FIRST_SEEN_FIELD) or 0.0),
            finalized=FINALIZED_FIELD in data,
        )

    def put(self, album_id: str, batch: AlbumBatch, ttl: int) -> None:
        key = self._key(album_id)
        mapping = {FIRST_SEEN_FIELD: str(batch.first_seen_at)}
        for part in batch.parts:
            mapping[f"{PART_PREFIX}{part.message_id}"] = json.dumps(part.to_dict())
        if batch.finalized:
            mapping[FINALIZED_FIELD] = "1"

        pipe = self._client.pipeline()
        pipe.delete(key)
        pipe.hset(key, mapping=mapping)
        pipe.expire(key, ttl)
        pipe.execute()

    def delete(self, album_id: str) -> None:
        self._client.delete(self._key(album_id))

    def append_part(self, album_id: str, part: InboundPart, first_seen_at: float, ttl: int) -> Optional[int]:
        count = int(
            self._append_part(
                keys=[self._key(album_id)],
                args=[
                    FIRST_SEEN_FIELD,
                    str(first_seen_at),
                    f"{PART_PREFIX}{part.message_id}",
                    json.dumps(part.to_dict()),
                    FINALIZED_FIELD,
                    ttl,
                    PART_PREFIX,
                ],
            )
        )
        if count < 0:
            raise AlbumClosedError(album_id)
        return count or None

    def mark_finalized(self, album_id: str, ttl: int) -> bool:
        claimed = self._mark_finalized(keys=[self._key(album_id)], args=[FINALIZED_FIELD, ttl])
        return bool(int(claimed))


class RedisAccessStore:
    """AccessPort that reads the allow-lists from Redis on every call.

    Falls back to the config.json lists when the key is missing or Redis is
    unreachable.
    """

    def __init__(self, client: redis.Redis, fallback: AccessConfig, prefix: str = "tagstash:") -> None:
        self._client = client
        self._fallback = fallback
        self._key = f"{prefix}bot_config"

    def get_access(self) -> AccessConfig:
        try:
            raw = self._client.get(self._key)
        except redis.RedisError:
            LOGGER.exception("Failed to read access lists from Redis, using config.json")
            return self._fallback
        if not raw:
            return self._fallback
        return AccessConfig.from_dict(json.loads(raw))

    def save_access(self, access: AccessConfig) -> None:
        self._client.set(self._key, json.dumps(access.to_dict()))
