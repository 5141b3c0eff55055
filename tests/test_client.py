from __future__ import annotations

import pytest

from client import read_api_credentials, start_bot


class DummyClient:
    def __init__(self) -> None:
        self.tokens: list[str] = []

    def start(self, bot_token: str) -> None:
        self.tokens.append(bot_token)


def test_read_api_credentials(monkeypatch) -> None:
    monkeypatch.setenv("API_ID", " 12345 ")
    monkeypatch.setenv("API_HASH", "abcdef")

    assert read_api_credentials() == (12345, "abcdef")


def test_non_numeric_api_id_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("API_ID", "not-a-number")
    monkeypatch.setenv("API_HASH", "abcdef")

    with pytest.raises(RuntimeError):
        read_api_credentials()


def test_start_bot_requires_token() -> None:
    client = DummyClient()

    with pytest.raises(RuntimeError):
        start_bot(client, "")
    assert start_bot(client, "1:abc") is client
    assert client.tokens == ["1:abc"]
