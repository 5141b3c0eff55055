from __future__ import annotations

from datetime import datetime, timezone

import pytest

from adapters.sqlite_storage import SQLiteRecordStore
from core.models import ContentRecord, MediaRef, OriginRef, SourceInfo
from core.ports import RecordIdConflict

CREATED = datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)


def _store(tmp_path) -> SQLiteRecordStore:
    store = SQLiteRecordStore(str(tmp_path / "records.db"))
    store.init_db()
    return store


def _record(record_id: str, message_id: int, tags: list[str], media=None) -> ContentRecord:
    return ContentRecord(
        id=record_id,
        tags=tags,
        body="**hello**",
        source_kind="telegram_channel",
        source_info=SourceInfo(kind="channel", channel_id="-1009", channel_title="Tech Feed"),
        origin=OriginRef(chat_id=-1009, message_id=message_id, chat_type="channel", channel_title="Tech Feed"),
        media=media,
        created_at=CREATED,
    )


def test_add_and_find_by_origin(tmp_path) -> None:
    store = _store(tmp_path)
    media = [MediaRef(type="photo", file_id="p1"), MediaRef(type="video", file_id="v1", duration=3)]
    store.add(_record("r1", 10, ["tech", "世界"], media=media))

    found = store.find_by_origin(-1009, 10)

    assert found is not None
    assert found.id == "r1"
    assert found.tags == ["tech", "世界"]
    assert found.media == media
    assert found.source_info.channel_title == "Tech Feed"
    assert found.origin.message_id == 10
    assert found.created_at == CREATED
    assert not found.edited
    assert store.find_by_origin(-1009, 11) is None


def test_single_media_round_trips_as_object(tmp_path) -> None:
    store = _store(tmp_path)
    media = MediaRef(type="document", file_id="d1", file_name="a.pdf")
    store.add(_record("r1", 10, ["docs"], media=media))

    assert store.get("r1").media == media


def test_update_rewrites_tag_index(tmp_path) -> None:
    store = _store(tmp_path)
    record = _record("r1", 10, ["old"])
    store.add(record)

    edited_at = datetime(2024, 1, 2, tzinfo=timezone.utc)
    store.update(record.with_edit(["new"], "changed", edited_at))

    stored = store.get("r1")
    assert stored.body == "changed"
    assert stored.tags == ["new"]
    assert stored.edited
    assert stored.updated_at == edited_at
    assert store.record_ids_for_tag("old") == []
    assert store.record_ids_for_tag("new") == ["r1"]


def test_count_and_list_tags_by_use(tmp_path) -> None:
    store = _store(tmp_path)
    store.add(_record("r1", 1, ["a", "b"]))
    store.add(_record("r2", 2, ["b"]))
    store.add(_record("r3", 3, ["c", "b", "a"]))

    assert store.count() == 3
    assert store.list_tags() == ["b", "a", "c"]


def test_duplicate_id_raises_conflict(tmp_path) -> None:
    store = _store(tmp_path)
    store.add(_record("r1", 1, ["a"]))

    with pytest.raises(RecordIdConflict):
        store.add(_record("r1", 2, ["z"]))

    assert store.count() == 1
    assert store.record_ids_for_tag("z") == []
