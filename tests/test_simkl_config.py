from __future__ import annotations

import json

from SimklConfig import SimklConfigStore


def test_missing_file_is_empty(store) -> None:
    assert store.getClientId() is None
    assert store.getAccessToken() is None
    assert store.isAuthenticated() is False


def test_set_creates_directories_and_persists(store, config_path) -> None:
    store.setClientId("abc")
    store.setAccessToken("tok")

    assert config_path.is_file()
    assert json.loads(config_path.read_text(encoding="utf-8")) == {"client_id": "abc", "access_token": "tok"}
    assert SimklConfigStore(str(config_path)).isAuthenticated() is True
    assert not (config_path.parent / "config.json.tmp").exists()


def test_clear_auth_keeps_client_id(authed_store) -> None:
    authed_store.clearAuth()
    assert authed_store.getAccessToken() is None
    assert authed_store.getClientId() == "client-123"
    assert authed_store.isAuthenticated() is False


def test_delete_missing_key_does_not_write(store, config_path) -> None:
    store.delete("access_token")
    assert not config_path.exists()


def test_empty_values_read_as_unset(store) -> None:
    store.set("access_token", "")
    assert store.getAccessToken() is None


def test_corrupt_file_is_ignored(store, config_path) -> None:
    config_path.parent.mkdir(parents=True)
    config_path.write_text("{not json", encoding="utf-8")
    assert store.getClientId() is None

    store.setClientId("fresh")
    assert json.loads(config_path.read_text(encoding="utf-8")) == {"client_id": "fresh"}


def test_non_object_file_is_ignored(store, config_path) -> None:
    config_path.parent.mkdir(parents=True)
    config_path.write_text("[1, 2]", encoding="utf-8")
    assert store.get("client_id") is None


def test_default_path_comes_from_config(monkeypatch, tmp_path) -> None:
    import config

    monkeypatch.setattr(config, "SIMKL_CONFIG_PATH", str(tmp_path / "elsewhere.json"))
    assert SimklConfigStore().path == str(tmp_path / "elsewhere.json")
