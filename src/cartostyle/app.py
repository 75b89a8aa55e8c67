"""Application bootstrap helpers for the cartostyle editor."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, cast

import httpx

from .services.settings import Settings, SettingsStore, redact_secret
from .services.style_store import ApiStyleStore, LocalStyleStore, PersistenceInitError, StyleStore, StyleStoreError
from .services.style_url import initial_style_url, load_style_url
from .style.style import empty_style
from .ui.controller import EditorController
from .ui.events import EventBus
from .ui.shortcuts import Action, CommandDispatcher
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


async def open_style_store(
    settings: Settings,
    client: httpx.AsyncClient,
    *,
    force_local: bool = False,
) -> StyleStore:
    """Initialise the configured backend, falling back to the local store."""

    local = LocalStyleStore(settings.styles_dir)
    if settings.style_store == "api" and not force_local:
        remote = ApiStyleStore(settings.api_url, client=client)
        try:
            await remote.init()
        except PersistenceInitError as exc:
            _LOGGER.warning("Falling back to local style store: %s", exc)
        else:
            return remote
    await local.init()
    return local


async def create_editor(
    settings: Settings,
    *,
    argv: Sequence[str] | None = None,
    env: Mapping[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
    settings_store: SettingsStore | None = None,
    bus: EventBus | None = None,
    watch: bool = True,
) -> EditorController:
    """Build an :class:`EditorController` and commit the initial style.

    A style URL given on the command line or in the environment takes
    priority over the persisted style and pins saves to the local store.
    """

    client = client or httpx.AsyncClient(timeout=settings.request_timeout, follow_redirects=True)
    style_url = initial_style_url(argv, env)
    store = await open_style_store(settings, client, force_local=style_url is not None)

    document: Mapping[str, Any] | None = None
    if style_url is not None:
        try:
            document = await load_style_url(client, style_url)
        except StyleStoreError as exc:
            _LOGGER.error("%s", exc)
    if document is None:
        try:
            document = await store.load()
        except StyleStoreError as exc:
            _LOGGER.error("Failed to load latest style: %s", exc)

    controller = EditorController(
        settings=settings,
        store=store,
        client=client,
        bus=bus,
        settings_store=settings_store,
    )
    if isinstance(store, ApiStyleStore):
        store.set_external_change_callback(controller.on_external_change)
        if watch:
            store.start_watching(settings.poll_interval)
    controller.on_style_changed(document or empty_style())
    return controller


def create_dispatcher(
    controller: EditorController,
    *,
    input_has_focus: Any = None,
    focus_map: Any = None,
    release_focus: Any = None,
) -> CommandDispatcher:
    """Create the shortcut dispatcher wired to ``controller``.

    Focus hooks left unset fall back to the Qt helpers in
    :mod:`cartostyle.ui.qt_keys`.
    """

    from .ui import qt_keys

    handlers = controller.command_handlers()
    handlers[Action.FOCUS_MAP] = focus_map or qt_keys.qt_focus_map
    handlers[Action.RELEASE_FOCUS] = release_focus or qt_keys.qt_release_focus
    return CommandDispatcher(handlers, input_has_focus=input_has_focus or qt_keys.qt_input_has_focus)


def create_qapp() -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to launch the cartostyle UI.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("cartostyle")
    app.setApplicationDisplayName("cartostyle")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    try:
        app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]
    except AttributeError:  # pragma: no cover - in case of mock QApplication
        pass
    return QtRuntime(app=app, loop=loop)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `cartostyle` console script."""

    args, passthrough = _parse_cli_args(argv)

    debug = _env_flag("CARTOSTYLE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("CARTOSTYLE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    settings = load_settings(resolved_path, store=settings_store)

    if args.dump_settings:
        _dump_settings(settings, settings_store)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    style_argv = [f"--style-url={args.style_url}"] if args.style_url else passthrough
    runtime = create_qapp()
    loop = runtime.loop
    controller = loop.run_until_complete(
        create_editor(settings, argv=style_argv, settings_store=settings_store)
    )

    from .ui.qt_keys import create_shortcut_filter

    shortcut_filter = create_shortcut_filter(create_dispatcher(controller))
    runtime.app.installEventFilter(shortcut_filter)

    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        with contextlib.suppress(RuntimeError):
            loop.run_until_complete(_shutdown_editor(controller))
        loop.close()


async def _shutdown_editor(controller: EditorController) -> None:
    """Cancel background fetches and persistence tasks."""

    await controller.aclose()
    store = controller.store
    if isinstance(store, ApiStyleStore):
        await store.aclose()


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        prog="cartostyle",
        add_help=True,
        description="Launch the cartostyle map style editor or inspect its configuration.",
    )
    parser.add_argument(
        "--style-url",
        metavar="URL",
        help="Open the style at URL instead of the last saved style.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.cartostyle/settings.json path.",
    )
    return parser.parse_known_args(argv)


def _dump_settings(settings: Settings, store: SettingsStore, *, stream: Any = None) -> None:
    payload = asdict(settings)
    for name in ("openmaptiles_access_token", "mapbox_access_token"):
        payload[name] = redact_secret(payload.get(name) or "")
    log_path = logging_utils.get_log_path()
    output = {"path": str(store.path), "log_path": str(log_path) if log_path else None, "settings": payload}
    target = stream or sys.stdout
    json.dump(output, target, indent=2, sort_keys=True)
    target.write("\n")


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
