"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from cartostyle.services.settings import SecretVault, Settings, SettingsStore

from tests.helpers import StubHttp, make_layer, make_style


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CARTOSTYLE_STYLE_URL",
        "CARTOSTYLE_STYLE_STORE",
        "CARTOSTYLE_API_URL",
        "CARTOSTYLE_STYLES_DIR",
        "CARTOSTYLE_OPENMAPTILES_TOKEN",
        "CARTOSTYLE_MAPBOX_TOKEN",
        "CARTOSTYLE_DEBUG_LOGGING",
        "CARTOSTYLE_DEDUPE_SOURCE_FETCHES",
        "CARTOSTYLE_REQUEST_TIMEOUT",
        "CARTOSTYLE_POLL_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_style() -> dict:
    return make_style(
        [
            make_layer("background", layer_type="background"),
            make_layer("water"),
            make_layer("roads", layer_type="line"),
        ]
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(styles_dir=str(tmp_path / "styles"), survey_dismissed=True)


@pytest.fixture
def settings_store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "settings.key"))


@pytest.fixture
def http() -> StubHttp:
    return StubHttp()
