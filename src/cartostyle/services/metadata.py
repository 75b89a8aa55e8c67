"""Download glyph and sprite metadata used to enrich the schema's default values."""

from __future__ import annotations

import logging
from typing import Any

import httpx

__all__ = [
    "apply_access_token",
    "download_glyphs_metadata",
    "download_sprite_metadata",
    "glyphs_metadata_url",
]

LOGGER = logging.getLogger(__name__)

_GLYPH_SUFFIX = "{fontstack}/{range}.pbf"
_FONTSTACKS_FILE = "fontstacks.json"


def apply_access_token(url_template: Any, access_token: str | None) -> Any:
    """Substitute the ``{key}`` placeholder; non-string templates pass through."""

    if isinstance(url_template, str) and access_token:
        return url_template.replace("{key}", access_token)
    return url_template


def glyphs_metadata_url(url_template: str) -> str:
    return url_template.replace(_GLYPH_SUFFIX, _FONTSTACKS_FILE)


async def download_glyphs_metadata(client: httpx.AsyncClient, url_template: Any) -> list[str]:
    """Return the font stacks advertised next to a glyph URL template."""

    if not url_template or not isinstance(url_template, str):
        return []
    payload = await _fetch_json(client, glyphs_metadata_url(url_template))
    if not isinstance(payload, list):
        return []
    return [str(font) for font in payload]


async def download_sprite_metadata(client: httpx.AsyncClient, base_url: Any) -> list[str]:
    """Return the icon names listed in ``<base_url>.json``."""

    if not base_url or not isinstance(base_url, str):
        return []
    payload = await _fetch_json(client, f"{base_url}.json")
    if not isinstance(payload, dict):
        return []
    return sorted(payload)


async def _fetch_json(client: httpx.AsyncClient, url: str) -> Any:
    try:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as exc:
        LOGGER.warning("Failed to download metadata from %s: %s", url, exc)
    except ValueError as exc:
        LOGGER.debug("Metadata at %s is not JSON: %s", url, exc)
    return None
