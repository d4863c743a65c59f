"""Tests for the token store."""

from __future__ import annotations

import json
import os
import stat
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from oauthcli.models import TokenRecord
from oauthcli.store import TokenStore

CREATED = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _oauth_record(provider: str = "openai", **kwargs: object) -> TokenRecord:
    defaults: dict[str, object] = {
        "provider": provider,
        "kind": "oauth2",
        "access_token": f"{provider}-access",
        "refresh_token": f"{provider}-refresh",
        "id_token": f"{provider}-id",
        "expires_at": datetime(2030, 1, 1, tzinfo=timezone.utc),
        "scopes": ["openid", "email"],
        "token_type": "Bearer",
        "created_at": CREATED,
    }
    defaults.update(kwargs)
    return TokenRecord(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def store(tmp_path: Path) -> TokenStore:
    return TokenStore(tmp_path / "data" / "tokens.json")


class TestLoad:
    def test_missing_file(self, store: TokenStore) -> None:
        assert store.load() == {}
        assert store.get("openai") is None

    def test_corrupt_file(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.load() == {}

    def test_non_object_file(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[1, 2, 3]")
        assert store.load() == {}

    def test_invalid_entry_skipped(self, store: TokenStore) -> None:
        store.save(_oauth_record("openai"))
        data = json.loads(store.path.read_text())
        data["broken"] = {"provider": "broken"}
        store.path.write_text(json.dumps(data))

        records = store.load()
        assert list(records) == ["openai"]


class TestSave:
    def test_round_trip(self, store: TokenStore) -> None:
        record = _oauth_record("openai")
        store.save(record)

        loaded = store.load()
        assert list(loaded) == ["openai"]
        assert loaded["openai"] == record

    def test_api_key_round_trip(self, store: TokenStore) -> None:
        record = TokenRecord(
            provider="anthropic", kind="api_key", api_key="sk-ant-xyz", created_at=CREATED
        )
        store.save(record)
        assert store.get("anthropic") == record

    def test_none_fields_omitted(self, store: TokenStore) -> None:
        store.save(
            TokenRecord(provider="anthropic", kind="api_key", api_key="k", created_at=CREATED)
        )
        entry = json.loads(store.path.read_text())["anthropic"]
        assert set(entry) == {"provider", "kind", "api_key", "created_at"}

    def test_pretty_printed(self, store: TokenStore) -> None:
        store.save(_oauth_record())
        text = store.path.read_text()
        assert text.startswith("{\n  ")
        assert text.endswith("\n")

    def test_timestamps_iso8601(self, store: TokenStore) -> None:
        store.save(_oauth_record())
        entry = json.loads(store.path.read_text())["openai"]
        assert datetime.fromisoformat(entry["created_at"].replace("Z", "+00:00")) == CREATED

    def test_replaces_same_provider(self, store: TokenStore) -> None:
        store.save(_oauth_record("openai", access_token="old"))
        store.save(_oauth_record("openai", access_token="new"))
        assert store.get("openai").access_token == "new"

    def test_preserves_other_providers(self, store: TokenStore) -> None:
        store.save(_oauth_record("openai"))
        store.save(_oauth_record("gemini"))
        assert set(store.load()) == {"openai", "gemini"}

    def test_preserves_entries_it_cannot_validate(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"legacy": {"accessToken": "x"}}))
        store.save(_oauth_record("openai"))
        data = json.loads(store.path.read_text())
        assert data["legacy"] == {"accessToken": "x"}

    def test_file_permissions(self, store: TokenStore) -> None:
        store.save(_oauth_record())
        assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600

    def test_concurrent_saves_keep_both(self, store: TokenStore) -> None:
        providers = [f"p{i}" for i in range(8)]
        threads = [
            threading.Thread(target=TokenStore(store.path).save, args=(_oauth_record(p),))
            for p in providers
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert set(store.load()) == set(providers)
