from __future__ import annotations

from datetime import datetime, timezone

from core.access import chat_id_variants, internal_chat_id, is_allowed
from core.config import AccessConfig
from core.models import Actor, ChatInfo, ChatKind, InboundPart


def _part(chat_id: int, kind: ChatKind, sender_id: "int | None" = None) -> InboundPart:
    return InboundPart(
        chat=ChatInfo(id=chat_id, kind=kind),
        message_id=1,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        text="hello",
        sender=Actor(id=sender_id) if sender_id is not None else None,
    )


def test_chat_id_variants_for_marked_channel_id() -> None:
    assert chat_id_variants(-1001234) == {"-1001234", "1234"}


def test_chat_id_variants_for_bare_channel_id() -> None:
    assert chat_id_variants(1234) == {"1234", "-1001234"}


def test_internal_chat_id_strips_channel_marker() -> None:
    assert internal_chat_id(-1001234) == "1234"
    assert internal_chat_id(-42) == "42"


def test_private_chat_is_checked_by_sender() -> None:
    access = AccessConfig.from_dict({"allowed_users": [111], "allowed_channels": []})

    assert is_allowed(_part(111, ChatKind.PRIVATE, sender_id=111), access)
    assert not is_allowed(_part(222, ChatKind.PRIVATE, sender_id=222), access)
    assert not is_allowed(_part(111, ChatKind.PRIVATE), access)


def test_channel_matches_any_id_spelling() -> None:
    access = AccessConfig.from_dict({"allowed_channels": "1234, -1005678"})

    assert is_allowed(_part(-1001234, ChatKind.CHANNEL), access)
    assert is_allowed(_part(-1005678, ChatKind.CHANNEL), access)
    assert not is_allowed(_part(-1009999, ChatKind.CHANNEL), access)


def test_groups_are_never_allowed() -> None:
    access = AccessConfig.from_dict({"allowed_users": ["1"], "allowed_channels": ["-1001"]})

    assert not is_allowed(_part(-1001, ChatKind.GROUP, sender_id=1), access)
