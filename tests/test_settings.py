"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cartostyle.services.settings import SecretVault, Settings, SettingsStore, redact_secret


def test_load_returns_defaults_when_file_missing(settings_store: SettingsStore) -> None:
    assert settings_store.load() == Settings()


def test_save_and_load_roundtrip(settings_store: SettingsStore) -> None:
    original = Settings(
        style_store="api",
        api_url="http://styles.internal:9000",
        styles_dir="/tmp/styles",
        request_timeout=5.0,
        poll_interval=10.0,
        openmaptiles_access_token="omt-secret",
        mapbox_access_token="pk.mapbox-secret",
        survey_dismissed=True,
        dedupe_source_fetches=True,
    )

    settings_store.save(original)

    assert settings_store.load() == original


def test_access_tokens_are_encrypted_on_disk(settings_store: SettingsStore) -> None:
    settings_store.save(Settings(openmaptiles_access_token="omt-secret"))

    payload = json.loads(settings_store.path.read_text(encoding="utf-8"))

    assert "openmaptiles_access_token" not in payload
    assert payload["openmaptiles_access_token_ciphertext"].startswith("fernet:")
    assert "omt-secret" not in settings_store.path.read_text(encoding="utf-8")
    assert payload["version"] == 1


def test_undecryptable_token_is_dropped(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"mapbox_access_token_ciphertext": "fernet:garbage", "survey_dismissed": True}))
    store = SettingsStore(path, vault=SecretVault(key_path=tmp_path / "settings.key"))

    settings = store.load()

    assert settings.mapbox_access_token == ""
    assert settings.survey_dismissed is True


def test_unknown_fields_and_store_kind_are_normalized(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"style_store": "Cloud", "theme": "dark"}))
    store = SettingsStore(path, vault=SecretVault(key_path=tmp_path / "settings.key"))

    assert store.load().style_store == "local"


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{oops")
    store = SettingsStore(path, vault=SecretVault(key_path=tmp_path / "settings.key"))

    assert store.load() == Settings()


def test_runtime_overrides_apply(settings_store: SettingsStore) -> None:
    settings = settings_store.load(overrides={"style_store": "API", "poll_interval": 1.5, "unknown": 1})

    assert settings.style_store == "api"
    assert settings.poll_interval == 1.5


def test_environment_overrides_apply(settings_store: SettingsStore, monkeypatch: pytest.MonkeyPatch) -> None:
    settings_store.save(Settings(api_url="http://persisted"))
    monkeypatch.setenv("CARTOSTYLE_API_URL", "http://from-env")
    monkeypatch.setenv("CARTOSTYLE_DEDUPE_SOURCE_FETCHES", "yes")
    monkeypatch.setenv("CARTOSTYLE_REQUEST_TIMEOUT", "3")
    monkeypatch.setenv("CARTOSTYLE_POLL_INTERVAL", "not-a-number")

    settings = settings_store.load()

    assert settings.api_url == "http://from-env"
    assert settings.dedupe_source_fetches is True
    assert settings.request_timeout == 3.0
    assert settings.poll_interval == Settings().poll_interval


def test_secret_vault_rejects_unknown_prefix(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")

    assert vault.decrypt(vault.encrypt("secret")) == "secret"
    with pytest.raises(ValueError):
        vault.decrypt("plain:secret")


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abc") == "***"
    assert redact_secret("pk.abcdef") == "pk*****ef"
