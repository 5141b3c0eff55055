"""Media-group (album) collection.

Telegram delivers an album as separate messages sharing a media_group_id,
with no "last part" marker. Parts are appended to a TTL-bounded batch in the
shared store. A batch is finalized either right away when it reaches the
platform maximum, or by a deferred check that runs shortly after the update
that delivered a part. Albums whose check never runs expire with the TTL.

Finalization is guarded by an atomic compare-and-set on the batch's finalized
flag, so the max-size path and any number of deferred checks produce exactly
one record per album. A part that arrives once its album is claimed is
refused by the store and becomes a record of its own.
"""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Awaitable, Callable, List, Optional

from core.config import AlbumConfig
from core.models import ContentRecord, InboundPart
from core.ports import AlbumClosedError, BatchStorePort, SchedulerPort

LOGGER = logging.getLogger(__name__)

AlbumFinalizer = Callable[[List[InboundPart]], Awaitable[ContentRecord]]


class MediaGroupCollector:
    """Collects album parts and finalizes each album once."""

    def __init__(
        self,
        batches: BatchStorePort,
        scheduler: SchedulerPort,
        finalizer: AlbumFinalizer,
        config: AlbumConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._batches = batches
        self._scheduler = scheduler
        self._finalizer = finalizer
        self._config = config
        self._clock = clock

    async def collect(self, part: InboundPart) -> None:
        """Add one part to its album batch."""

        album_id = part.album_id
        if not album_id:
            raise ValueError("collect() requires a part with an album id")

        try:
            count = self._batches.append_part(album_id, part, self._clock(), self._config.ttl_seconds)
        except AlbumClosedError:
            LOGGER.warning(
                "Media group %s: part %s arrived after finalization, storing it as its own record",
                album_id,
                part.message_id,
            )
            await self._finalizer([part])
            return
        if count is None:
            LOGGER.info("Media group %s: duplicate part %s ignored", album_id, part.message_id)
            return

        LOGGER.info("Media group %s: collected %s part(s)", album_id, count)

        if count >= self._config.max_size:
            LOGGER.info("Media group %s reached %s parts, finalizing now", album_id, count)
            await self.finalize(album_id)
            return

        self._scheduler.defer(
            self._config.finalize_delay_seconds,
            partial(self.deferred_check, album_id),
        )

    async def deferred_check(self, album_id: str) -> Optional[ContentRecord]:
        """Finalize the album if nobody has done so yet."""

        batch = self._batches.get(album_id)
        if batch is None or batch.finalized:
            return None
        LOGGER.info("Deferred check finalizing media group %s (%s parts)", album_id, len(batch.parts))
        return await self.finalize(album_id)

    async def finalize(self, album_id: str) -> Optional[ContentRecord]:
        """Turn the batch into a record; a no-op for missing or claimed batches."""

        batch = self._batches.get(album_id)
        if batch is None or batch.finalized:
            LOGGER.info("Media group %s already finalized or expired", album_id)
            return None

        if not self._batches.mark_finalized(album_id, self._config.ttl_seconds):
            LOGGER.info("Media group %s claimed by another finalizer", album_id)
            return None

        # Re-read after the claim so parts that landed in between are included.
        claimed = self._batches.get(album_id) or batch
        parts = sorted(claimed.parts, key=lambda item: item.message_id)
        if not parts:
            self._batches.delete(album_id)
            return None

        try:
            record = await self._finalizer(parts)
        except Exception:
            LOGGER.exception("Failed to finalize media group %s; batch left to expire", album_id)
            raise

        self._batches.delete(album_id)
        LOGGER.info("Media group %s finalized as %s (%s parts)", album_id, record.id, len(parts))
        return record
