"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "STYLE_STORE_CHOICES",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".cartostyle"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "CARTOSTYLE_STYLE_STORE": "style_store",
    "CARTOSTYLE_API_URL": "api_url",
    "CARTOSTYLE_STYLES_DIR": "styles_dir",
    "CARTOSTYLE_OPENMAPTILES_TOKEN": "openmaptiles_access_token",
    "CARTOSTYLE_MAPBOX_TOKEN": "mapbox_access_token",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CARTOSTYLE_DEBUG_LOGGING": "debug_logging",
    "CARTOSTYLE_DEDUPE_SOURCE_FETCHES": "dedupe_source_fetches",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "CARTOSTYLE_REQUEST_TIMEOUT": "request_timeout",
    "CARTOSTYLE_POLL_INTERVAL": "poll_interval",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_SECRET_FIELDS: tuple[str, ...] = ("openmaptiles_access_token", "mapbox_access_token")
_CIPHERTEXT_SUFFIX = "_ciphertext"
STYLE_STORE_CHOICES: tuple[str, ...] = ("local", "api")


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    style_store: str = "local"
    api_url: str = "http://localhost:8000"
    styles_dir: str = str(_SETTINGS_DIR / "styles")
    request_timeout: float = 15.0
    poll_interval: float = 2.0
    openmaptiles_access_token: str = ""
    mapbox_access_token: str = ""
    debug_logging: bool = False
    survey_dismissed: bool = False
    dedupe_source_fetches: bool = False


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying runtime and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            secrets = {name: self._decrypt(payload.pop(f"{name}{_CIPHERTEXT_SUFFIX}", None)) for name in _SECRET_FIELDS}
            data = _filter_fields(payload)
            for name, value in secrets.items():
                if value:
                    data[name] = value
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            settings = _normalize_style_store(settings)
            LOGGER.debug("Settings loaded from %s (style_store=%s)", self._path, settings.style_store)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        for name in _SECRET_FIELDS:
            plaintext = data.pop(name, "") or ""
            if plaintext:
                data[f"{name}{_CIPHERTEXT_SUFFIX}"] = self._vault.encrypt(plaintext)
        data["version"] = _SETTINGS_VERSION
        return data

    def _decrypt(self, ciphertext: str | None) -> str:
        if not ciphertext:
            return ""
        try:
            return self._vault.decrypt(ciphertext)
        except ValueError as exc:
            LOGGER.warning("Unable to decrypt stored access token: %s", exc)
            return ""

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return data

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str,
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = _normalize_style_store(replace(settings, **filtered))
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


class SecretVault:
    """Encrypts access tokens with a symmetric Fernet key stored on disk."""

    prefix = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.prefix}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if prefix != self.prefix or not payload:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - set(_SECRET_FIELDS)
    return {key: value for key, value in payload.items() if key in allowed}


def _normalize_style_store(settings: Settings) -> Settings:
    kind = str(settings.style_store or "").strip().lower()
    if kind in STYLE_STORE_CHOICES:
        if kind != settings.style_store:
            return replace(settings, style_store=kind)
        return settings
    LOGGER.warning("Unknown style_store '%s'; defaulting to local.", settings.style_store)
    return replace(settings, style_store="local")


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
