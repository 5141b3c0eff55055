"""SQLite storage adapter.

Implements the core RecordStorePort using a simple SQLite database.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from core.models import ContentRecord, OriginRef, SourceInfo, media_from_json, media_to_json
from core.ports import RecordIdConflict


class SQLiteRecordStore:
    """Thin SQLite wrapper that satisfies the RecordStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - records: one row per content record
        - record_tags: tag -> record id index
        """

        with self._connect() as conn:
            # records keeps the JSON-shaped parts of a record as text columns;
            # the origin is also split out so edits can find their record.
            # Fields:
            # - id: record id (PRIMARY KEY)
            # - tags: JSON list, first-seen order
            # - body: rendered Markdown
            # - source_kind / source_info: attribution
            # - origin_chat_id / origin_message_id: originating Telegram message
            # - media: JSON object, list or null
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id TEXT PRIMARY KEY,
                    tags TEXT NOT NULL,
                    body TEXT NOT NULL,
                    source_kind TEXT NOT NULL,
                    source_info TEXT,
                    origin_chat_id INTEGER,
                    origin_message_id INTEGER,
                    origin TEXT,
                    media TEXT,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP,
                    edited INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS records_origin
                ON records (origin_chat_id, origin_message_id)
                """
            )
            # record_tags is rewritten whenever a record's tag list changes.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS record_tags (
                    tag TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    PRIMARY KEY (tag, record_id)
                )
                """
            )

    def add(self, record: ContentRecord) -> None:
        """Insert a record and index its tags."""

        origin = record.origin
        with self._connect() as conn:
            try:
                self._insert(conn, record, origin)
            except sqlite3.IntegrityError as exc:
                raise RecordIdConflict(record.id) from exc
            self._index_tags(conn, record.id, record.tags)

    def _insert(self, conn: sqlite3.Connection, record: ContentRecord, origin: Optional[OriginRef]) -> None:
        conn.execute(
            """
            INSERT INTO records (
                id,
                tags,
                body,
                source_kind,
                source_info,
                origin_chat_id,
                origin_message_id,
                origin,
                media,
                created_at,
                updated_at,
                edited
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                json.dumps(record.tags, ensure_ascii=False),
                record.body,
                record.source_kind,
                json.dumps(asdict(record.source_info)) if record.source_info else None,
                origin.chat_id if origin else None,
                origin.message_id if origin else None,
                json.dumps(asdict(origin)) if origin else None,
                json.dumps(media_to_json(record.media)),
                record.created_at.isoformat(),
                record.updated_at.isoformat() if record.updated_at else None,
                int(record.edited),
            ),
        )

    def update(self, record: ContentRecord) -> None:
        """Overwrite the mutable fields of a record and re-index its tags."""

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE records
                SET tags = ?, body = ?, updated_at = ?, edited = ?
                WHERE id = ?
                """,
                (
                    json.dumps(record.tags, ensure_ascii=False),
                    record.body,
                    record.updated_at.isoformat() if record.updated_at else None,
                    int(record.edited),
                    record.id,
                ),
            )
            conn.execute("DELETE FROM record_tags WHERE record_id = ?", (record.id,))
            self._index_tags(conn, record.id, record.tags)

    @staticmethod
    def _index_tags(conn: sqlite3.Connection, record_id: str, tags: List[str]) -> None:
        conn.executemany(
            "INSERT OR IGNORE INTO record_tags (tag, record_id) VALUES (?, ?)",
            [(tag, record_id) for tag in tags],
        )

    def get(self, record_id: str) -> Optional[ContentRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM records WHERE id = ?", (record_id,)).fetchone()
        return _row_to_record(row) if row else None

    def find_by_origin(self, chat_id: int, message_id: int) -> Optional[ContentRecord]:
        """Return the record built from a given Telegram message, if any."""

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM records
                WHERE origin_chat_id = ? AND origin_message_id = ?
                ORDER BY created_at
                LIMIT 1
                """,
                (chat_id, message_id),
            ).fetchone()
        return _row_to_record(row) if row else None

    def record_ids_for_tag(self, tag: str) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT record_id FROM record_tags WHERE tag = ? ORDER BY record_id",
                (tag,),
            ).fetchall()
        return [row["record_id"] for row in rows]

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM records").fetchone()
        return int(row["total"])

    def list_tags(self) -> List[str]:
        """Return every indexed tag, most used first."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT tag, COUNT(*) AS uses FROM record_tags
                GROUP BY tag
                ORDER BY uses DESC, tag
                """
            ).fetchall()
        return [row["tag"] for row in rows]


def _row_to_record(row: sqlite3.Row) -> ContentRecord:
    source_info = json.loads(row["source_info"]) if row["source_info"] else None
    origin = json.loads(row["origin"]) if row["origin"] else None
    return ContentRecord(
        id=row["id"],
        tags=json.loads(row["tags"]),
        body=row["body"],
        source_kind=row["source_kind"],
        source_info=SourceInfo(**source_info) if source_info else None,
        origin=OriginRef(**origin) if origin else None,
        media=media_from_json(json.loads(row["media"])) if row["media"] else None,
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        edited=bool(row["edited"]),
    )
