# File: tests/test_scanner.py
# Full cycle: local magarderie-like site, real parser, SQLite store
from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web

from garderie_watch.config import AppConfig
from garderie_watch.errors import CrawlError
from garderie_watch.scanner import start_crawl
from garderie_watch.store import RecordStore

from conftest import detail_html, index_html


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def magarderie(unused_tcp_port: int) -> AsyncIterator[dict]:
    """Two result pages; page 2 ends with a garderie beyond the 5 km cutoff."""
    state = {
        "pages_served": [],
        "last_update": {1: "2014-03-15", 2: "2014-03-16", 3: "2014-03-17"},
        "broken": set(),
    }
    pages = {
        1: index_html([(1, "soleil", "Garderie Soleil", "0.8"), (2, "lune", "CPE La Lune", "2.1")], has_more=True),
        2: index_html([(3, "etoile", "Les Étoiles", "4.9"), (4, "loin", "Très Loin", "12.0")], has_more=True),
        3: index_html([(5, "jamais", "Jamais vue", "13.0")], has_more=False),
    }
    app = web.Application()

    async def handle_index(request: web.Request):
        page = int(request.query.get("SPag", "1"))
        state["pages_served"].append(page)
        return web.Response(text=pages[page], content_type="text/html")

    async def handle_detail(request: web.Request):
        gid = int(request.match_info["slug"].split("-")[0])
        if gid in state["broken"]:
            return web.Response(status=500)
        html = detail_html(title=f"Garderie {gid}", last_update=state["last_update"][gid])
        return web.Response(text=html, content_type="text/html")

    app.router.add_get("/recherche-garderie.html", handle_index)
    app.router.add_get("/garderie/{slug}", handle_detail)

    async for url in _serve_app(app, unused_tcp_port):
        state["url"] = url
        yield state


def make_config(base: str, db_url: str) -> AppConfig:
    return AppConfig(
        query={"maxDistanceInKM": 5.0},
        urls={"base_url": base, "index_url": f"{base}/recherche-garderie.html"},
        http={"timeout": 5.0, "user_agent": "TestAgent/1.0"},
        database={"url": db_url},
    )


@pytest.mark.asyncio()
async def test_full_cycle_then_idempotent_rerun(magarderie, db_url):
    cfg = make_config(magarderie["url"], db_url)

    first = await start_crawl(cfg)
    assert magarderie["pages_served"] == [1, 2]
    assert sorted(first.ids()) == [1, 2, 3]
    assert all(r.is_new for r in first)
    assert first.failures == []

    second = await start_crawl(cfg)
    assert len(second) == 0
    assert second.unchanged == 3

    async with RecordStore(db_url) as store:
        assert await store.count() == 3
        assert (await store.find_by_id(1)).email == "info@soleil.ca"


@pytest.mark.asyncio()
async def test_changed_page_is_reported_as_update(magarderie, db_url):
    cfg = make_config(magarderie["url"], db_url)
    await start_crawl(cfg)

    magarderie["last_update"][2] = "2014-04-01"
    result = await start_crawl(cfg)

    assert result.ids() == [2]
    assert result.updated_records[0].revision == 1


@pytest.mark.asyncio()
async def test_broken_detail_page_is_skipped(magarderie, db_url):
    magarderie["broken"].add(2)
    result = await start_crawl(make_config(magarderie["url"], db_url))

    assert sorted(result.ids()) == [1, 3]
    assert [f.summary.id for f in result.failures] == [2]


@pytest.mark.asyncio()
async def test_unreachable_site_fails_the_run(unused_tcp_port, db_url):
    cfg = make_config(f"http://localhost:{unused_tcp_port}", db_url)
    with pytest.raises(CrawlError):
        await start_crawl(cfg)
