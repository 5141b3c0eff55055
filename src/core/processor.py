"""Core message ingestion pipeline.

This module is integration-agnostic. It only relies on ports for storage,
access lists, notifications and scheduling, enabling the webhook and the
Telethon client to share the same flow:

1) Drop group chats and senders that are not on the allow-list (silently)
2) Edits: re-render the matched record in place
3) Album parts: hand over to the media-group collector
4) Standalone parts: render, tag and store a record
5) Private chats get a best-effort confirmation
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional

from core.access import is_allowed
from core.collector import MediaGroupCollector
from core.config import IngestConfig
from core.models import ChatKind, ContentRecord, InboundPart, InboundUpdate, UpdateKind
from core.ports import (
    AccessPort,
    BatchStorePort,
    Notice,
    NoticeKind,
    NotifierPort,
    RecordIdConflict,
    RecordStorePort,
    SchedulerPort,
)
from core.records import build_record, generate_record_id, render_body
from core.tags import extract_tags

LOGGER = logging.getLogger(__name__)

HELP_COMMANDS = {"/start", "/help", "/menu"}

# Fresh ids tried before a record id clash is reported.
ID_ATTEMPTS = 3


def command_of(text: str) -> Optional[str]:
    """Return the bot command a text starts with, without any @botname suffix."""

    if not text.startswith("/"):
        return None
    head = text.split(maxsplit=1)[0]
    return head.split("@", 1)[0].lower()


class IngestionProcessor:
    """Orchestrates permission checks, extraction, batching and persistence."""

    def __init__(
        self,
        records: RecordStorePort,
        batches: BatchStorePort,
        access: AccessPort,
        notifier: NotifierPort,
        scheduler: SchedulerPort,
        config: IngestConfig,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._records = records
        self._access = access
        self._notifier = notifier
        self._config = config
        self._now = now or self._default_now
        self._collector = MediaGroupCollector(
            batches=batches,
            scheduler=scheduler,
            finalizer=self._create_album_record,
            config=config.album,
        )

    @property
    def collector(self) -> MediaGroupCollector:
        return self._collector

    def _default_now(self) -> datetime:
        return datetime.now(self._config.timezone or timezone.utc)

    async def handle(self, update: InboundUpdate) -> Optional[ContentRecord]:
        """Process one inbound update; return the created or edited record."""

        part = update.part
        if part.chat.kind is ChatKind.GROUP:
            return None

        # Unauthorized senders get no reply at all, so the bot stays invisible.
        if not is_allowed(part, self._access.get_access()):
            LOGGER.info("Dropping %s update from chat %s (not allowed)", part.chat.kind.value, part.chat.id)
            return None

        if update.kind is UpdateKind.EDITED:
            return await self._handle_edit(part)

        if part.album_id:
            await self._collector.collect(part)
            return None

        return await self._handle_single(part)

    async def _handle_single(self, part: InboundPart) -> Optional[ContentRecord]:
        private = part.chat.kind is ChatKind.PRIVATE

        if private and command_of(part.text) in HELP_COMMANDS:
            await self._notify(
                Notice(
                    kind=NoticeKind.HELP,
                    chat_id=part.chat.id,
                    reply_to=None,
                    total_records=self._records.count(),
                    known_tags=tuple(self._records.list_tags()),
                )
            )
            return None

        # Webhook redeliveries reuse the message id, so a stored origin means
        # this part was already ingested.
        if self._records.find_by_origin(part.chat.id, part.message_id) is not None:
            LOGGER.info("Skipping already stored message %s/%s", part.chat.id, part.message_id)
            return None

        body = render_body(part)
        if not body.strip() and part.media is None:
            if private:
                await self._notify(Notice(kind=NoticeKind.EMPTY, chat_id=part.chat.id, reply_to=part.message_id))
            return None

        record = self._add_new(build_record([part], self._config, self._now()))
        LOGGER.info("Record %s saved from chat %s", record.id, part.chat.id)

        if private:
            await self._confirm(NoticeKind.CREATED, part, record)
        return record

    def _add_new(self, record: ContentRecord) -> ContentRecord:
        """Store a new record, drawing a fresh id if the random one is taken."""

        for _ in range(ID_ATTEMPTS - 1):
            try:
                self._records.add(record)
                return record
            except RecordIdConflict:
                LOGGER.warning("Record id %s already taken, retrying with a new id", record.id)
                record = replace(record, id=generate_record_id(record.created_at))
        self._records.add(record)
        return record

    async def _create_album_record(self, parts: List[InboundPart]) -> ContentRecord:
        first = parts[0]
        record = self._add_new(build_record(parts, self._config, self._now(), album=True))
        LOGGER.info("Album record %s saved with %s media item(s)", record.id, len(record.media or []))

        if first.chat.kind is ChatKind.PRIVATE:
            await self._confirm(NoticeKind.CREATED, first, record)
        return record

    async def _handle_edit(self, part: InboundPart) -> Optional[ContentRecord]:
        existing = self._records.find_by_origin(part.chat.id, part.message_id)
        if existing is None:
            LOGGER.info("No record for edited message %s/%s", part.chat.id, part.message_id)
            return None

        body = render_body(part)
        if not body.strip():
            return None

        tags = extract_tags(part.text) or list(existing.tags)
        updated = existing.with_edit(tags, body, self._now())
        self._records.update(updated)
        LOGGER.info("Record %s updated from edit of message %s", updated.id, part.message_id)

        if part.chat.kind is ChatKind.PRIVATE:
            await self._confirm(NoticeKind.UPDATED, part, updated)
        return updated

    async def _confirm(self, kind: NoticeKind, part: InboundPart, record: ContentRecord) -> None:
        await self._notify(
            Notice(
                kind=kind,
                chat_id=part.chat.id,
                reply_to=part.message_id,
                record=record,
                preview_chars=self._config.preview_chars,
            )
        )

    async def _notify(self, notice: Notice) -> None:
        # Replies are best-effort: a failed send never fails the ingestion.
        try:
            await self._notifier.send(notice)
        except Exception:
            LOGGER.exception("Failed to send %s notice to chat %s", notice.kind.value, notice.chat_id)
