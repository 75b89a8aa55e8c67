"""Tests for the local and API-backed style stores."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from cartostyle.services.style_store import ApiStyleStore, LocalStyleStore, PersistenceInitError, StyleStoreError
from cartostyle.services.style_url import initial_style_url, load_style_url

from tests.helpers import StubHttp, make_style

API = "http://localhost:8000"


class TestLocalStyleStore:
    @pytest.mark.asyncio
    async def test_load_returns_none_before_first_save(self, tmp_path: Path) -> None:
        store = LocalStyleStore(tmp_path / "styles")
        await store.init()

        assert (tmp_path / "styles").is_dir()
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_save_then_load_returns_latest_style(self, tmp_path: Path) -> None:
        store = LocalStyleStore(tmp_path)
        await store.init()

        store.save(make_style(id="first"))
        store.save(make_style(id="second", name="Second"))

        loaded = await store.load()
        assert loaded is not None
        assert loaded["id"] == "second"
        assert json.loads((tmp_path / "first.json").read_text())["id"] == "first"

    @pytest.mark.asyncio
    async def test_save_assigns_missing_id(self, tmp_path: Path) -> None:
        store = LocalStyleStore(tmp_path)
        style = make_style()
        del style["id"]

        store.save(style)

        loaded = await store.load()
        assert loaded is not None and loaded["id"]
        assert "id" not in style

    @pytest.mark.asyncio
    async def test_corrupt_file_is_treated_as_missing(self, tmp_path: Path) -> None:
        (tmp_path / "latest.json").write_text(json.dumps({"id": "broken"}))
        (tmp_path / "broken.json").write_text("{not json")

        assert await LocalStyleStore(tmp_path).load() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("style_id", ["../escaped", "nested/style", "..", "back\\slash"])
    async def test_path_unsafe_ids_are_not_written(self, tmp_path: Path, style_id: str) -> None:
        styles_dir = tmp_path / "styles"
        store = LocalStyleStore(styles_dir)
        await store.init()

        store.save(make_style(id=style_id))

        assert list(styles_dir.iterdir()) == []
        assert not (tmp_path / "escaped.json").exists()

    @pytest.mark.asyncio
    async def test_path_unsafe_latest_pointer_is_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "outside.json").write_text(json.dumps(make_style(id="outside")))
        styles_dir = tmp_path / "styles"
        styles_dir.mkdir()
        (styles_dir / "latest.json").write_text(json.dumps({"id": "../outside"}))

        assert await LocalStyleStore(styles_dir).load() is None


class TestApiStyleStore:
    @pytest.mark.asyncio
    async def test_init_fails_when_server_is_unreachable(self, http: StubHttp) -> None:
        store = ApiStyleStore(API, client=http.client())

        with pytest.raises(PersistenceInitError):
            await store.init()

    @pytest.mark.asyncio
    async def test_init_rejects_unexpected_payload(self, http: StubHttp) -> None:
        http.routes[f"{API}/styles"] = {"styles": []}
        store = ApiStyleStore(API, client=http.client())

        with pytest.raises(PersistenceInitError):
            await store.init()

    @pytest.mark.asyncio
    async def test_load_first_style(self, http: StubHttp) -> None:
        http.routes[f"{API}/styles"] = ["abc", "def"]
        http.routes[f"{API}/styles/abc"] = make_style(id="abc")
        store = ApiStyleStore(API, client=http.client())

        await store.init()
        loaded = await store.load()

        assert store.style_id == "abc"
        assert loaded is not None and loaded["id"] == "abc"

    @pytest.mark.asyncio
    async def test_load_without_styles_returns_empty_style(self, http: StubHttp) -> None:
        http.routes[f"{API}/styles"] = []
        store = ApiStyleStore(API, client=http.client())

        await store.init()
        loaded = await store.load()

        assert loaded is not None
        assert loaded["layers"] == []

    @pytest.mark.asyncio
    async def test_save_puts_style_in_background(self, http: StubHttp) -> None:
        http.routes[f"{API}/styles"] = ["abc"]
        http.routes[f"{API}/styles/abc"] = lambda request: httpx.Response(200, json={})
        store = ApiStyleStore(API, client=http.client())
        await store.init()

        store.save(make_style(id="abc"))
        await store.join()

        put = [request for request in http.requests if request.method == "PUT"]
        assert len(put) == 1
        assert json.loads(put[0].content)["id"] == "abc"

    @pytest.mark.asyncio
    async def test_poll_reports_external_changes_once(self, http: StubHttp) -> None:
        remote = {"doc": make_style(id="abc")}
        http.routes[f"{API}/styles"] = ["abc"]
        http.routes[f"{API}/styles/abc"] = lambda request: httpx.Response(200, json=remote["doc"])
        callback = MagicMock()
        store = ApiStyleStore(API, client=http.client(), on_external_change=callback)
        await store.init()
        await store.load()

        assert await store.poll_external_changes() is False

        remote["doc"] = make_style(id="abc", name="Edited elsewhere")
        assert await store.poll_external_changes() is True
        assert await store.poll_external_changes() is False
        callback.assert_called_once()
        assert callback.call_args.args[0]["name"] == "Edited elsewhere"

    @pytest.mark.asyncio
    async def test_poll_ignores_server_copy_while_save_is_pending(self, http: StubHttp) -> None:
        remote = {"doc": make_style(id="abc", name="Old")}
        put_started = asyncio.Event()

        async def respond(request: httpx.Request) -> httpx.Response:
            if request.method == "PUT":
                put_started.set()
                await asyncio.sleep(0.05)
                remote["doc"] = json.loads(request.content)
                return httpx.Response(200, json={})
            return httpx.Response(200, json=remote["doc"])

        http.routes[f"{API}/styles"] = ["abc"]
        http.routes[f"{API}/styles/abc"] = respond
        callback = MagicMock()
        store = ApiStyleStore(API, client=http.client(), on_external_change=callback)
        await store.init()
        await store.load()

        store.save(make_style(id="abc", name="New"))
        assert store.saving
        assert await store.poll_external_changes() is False
        await put_started.wait()
        assert await store.poll_external_changes() is False

        await store.join()
        assert not store.saving
        assert await store.poll_external_changes() is False
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_poll_discards_fetch_overtaken_by_save(self, http: StubHttp) -> None:
        store_ref: list[ApiStyleStore] = []

        def respond(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                store_ref[0].save(make_style(id="abc", name="Saved during poll"))
            return httpx.Response(200, json=make_style(id="abc", name="Old"))

        http.routes[f"{API}/styles"] = ["abc"]
        callback = MagicMock()
        store = ApiStyleStore(API, client=http.client(), on_external_change=callback)
        store_ref.append(store)
        await store.init()
        http.routes[f"{API}/styles/abc"] = respond

        assert await store.poll_external_changes() is False
        await store.join()
        callback.assert_not_called()


def test_initial_style_url_prefers_argument_over_environment() -> None:
    env = {"CARTOSTYLE_STYLE_URL": "https://env.example.com/style.json"}

    assert initial_style_url(["--style-url", "https://a.example.com/s.json"], env) == "https://a.example.com/s.json"
    assert initial_style_url(["--style-url=https://b.example.com/s.json"], env) == "https://b.example.com/s.json"
    assert initial_style_url([], env) == "https://env.example.com/style.json"
    assert initial_style_url([], {}) is None


@pytest.mark.asyncio
async def test_load_style_url(http: StubHttp) -> None:
    http.routes["https://example.com/style.json"] = make_style(id="remote")
    http.routes["https://example.com/list.json"] = [1, 2]
    client = http.client()

    assert (await load_style_url(client, "https://example.com/style.json"))["id"] == "remote"
    with pytest.raises(StyleStoreError):
        await load_style_url(client, "https://example.com/list.json")
    with pytest.raises(StyleStoreError):
        await load_style_url(client, "https://example.com/missing.json")
