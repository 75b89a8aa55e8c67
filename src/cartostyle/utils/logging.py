"""Logging helpers for the cartostyle editor core.

Besides the global level, each editor subsystem can be given its own level,
either through ``setup_logging(levels=...)`` or the ``CARTOSTYLE_LOG_LEVELS``
environment variable (``sources=DEBUG,store=WARNING``). Subsystems are named
by the short aliases in :data:`SUBSYSTEM_LOGGERS` or by full logger names.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Mapping

__all__ = ["SUBSYSTEM_LOGGERS", "get_log_path", "parse_log_levels", "setup_logging"]

LOGGER = logging.getLogger(__name__)

SUBSYSTEM_LOGGERS: Mapping[str, str] = {
    "sources": "cartostyle.services.sources",
    "metadata": "cartostyle.services.metadata",
    "store": "cartostyle.services.style_store",
    "settings": "cartostyle.services.settings",
    "pipeline": "cartostyle.ui.pipeline",
    "events": "cartostyle.ui.events",
    "shortcuts": "cartostyle.ui.shortcuts",
    "tasks": "cartostyle.utils.tasks",
}

_DEFAULT_LOG_DIR = Path.home() / ".cartostyle" / "logs"
_LOG_FILE_NAME = "cartostyle.log"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "httpx", "httpcore")
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    levels: Mapping[str, int | str] | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating file handler and optional console output.

    ``levels`` maps subsystem aliases or logger names to their own level;
    when omitted it is read from ``CARTOSTYLE_LOG_LEVELS``. Handlers accept
    the most verbose configured level so a DEBUG subsystem is not filtered
    out under an INFO root.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    subsystem_levels = parse_log_levels(os.environ.get("CARTOSTYLE_LOG_LEVELS", "")) if levels is None else levels
    resolved = {_logger_name(name): _coerce_level(value) for name, value in subsystem_levels.items()}
    handler_level = min([level, *resolved.values()])

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_external_loggers(level)
    for name, subsystem_level in resolved.items():
        logging.getLogger(name).setLevel(subsystem_level)
        LOGGER.debug("Log level for %s set to %s", name, logging.getLevelName(subsystem_level))

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def parse_log_levels(raw: str) -> dict[str, int]:
    """Parse ``name=LEVEL`` pairs separated by commas; malformed pairs are skipped."""

    parsed: dict[str, int] = {}
    for chunk in raw.split(","):
        name, sep, value = chunk.partition("=")
        name, value = name.strip(), value.strip()
        if not sep or not name or not value:
            continue
        try:
            parsed[name] = _coerce_level(value)
        except ValueError:
            continue
    return parsed


def _logger_name(name: str) -> str:
    return SUBSYSTEM_LOGGERS.get(name, name)


def _coerce_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    candidate = logging.getLevelName(value.strip().upper())
    if not isinstance(candidate, int):
        raise ValueError(f"Unknown log level {value!r}")
    return candidate


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("CARTOSTYLE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _tune_external_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
