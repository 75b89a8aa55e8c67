"""Bootstrap a style from a URL supplied at launch."""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Sequence

import httpx

from .style_store import StyleStoreError

__all__ = ["STYLE_URL_ENV", "initial_style_url", "load_style_url"]

LOGGER = logging.getLogger(__name__)

STYLE_URL_ENV = "CARTOSTYLE_STYLE_URL"
_STYLE_URL_FLAG = "--style-url"


def initial_style_url(argv: Sequence[str] | None = None, env: Mapping[str, str] | None = None) -> str | None:
    """Return the style URL passed as ``--style-url`` or through the environment."""

    args = list(argv or ())
    for index, arg in enumerate(args):
        if arg == _STYLE_URL_FLAG and index + 1 < len(args):
            return args[index + 1] or None
        if arg.startswith(f"{_STYLE_URL_FLAG}="):
            return arg.split("=", 1)[1] or None
    environ = os.environ if env is None else env
    return environ.get(STYLE_URL_ENV) or None


async def load_style_url(client: httpx.AsyncClient, url: str) -> dict[str, Any]:
    """Fetch the style at ``url`` once.

    Raises:
        StyleStoreError: The request failed or the body is not a JSON object.
    """

    LOGGER.info("Loading style from %s", url)
    try:
        response = await client.get(url)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise StyleStoreError(f"Unable to load style from {url}: {exc}") from exc
    if not isinstance(payload, dict):
        raise StyleStoreError(f"Style at {url} is not a JSON object")
    return payload
