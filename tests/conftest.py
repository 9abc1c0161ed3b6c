# File: tests/conftest.py
import asyncio
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pytest

from garderie_watch.crawler.models import IndexPage, ItemDetail, ItemSummary, PlaceInfo
from garderie_watch.errors import StoreError
from garderie_watch.store import Garderie

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


# --------------------------------------------------------------------------- #
#                         HTML builders (magarderie layout)                   #
# --------------------------------------------------------------------------- #


def obfuscate(email: str, key: str) -> str:
    """Inverse of the site's sm_wrap(): XOR each character with the key, as JS \\x escapes."""
    return "".join(f"\\x{ord(key[i]) ^ ord(ch):02x}" for i, ch in enumerate(email))


def index_html(rows: Iterable[tuple], has_more: bool) -> str:
    """rows: (id, slug, title, distance) tuples."""
    body = "".join(
        f'<tr><td class="TextResult"><a class="LinkResult" href="/garderie/{gid}-{slug}.html">{title}</a>'
        f"</td><td>Montréal</td><td>{distance} km</td></tr>"
        for gid, slug, title, distance in rows
    )
    pager = '<span>1</span><span> Suiv.&gt;&gt;</span>' if has_more else "<span>1</span>"
    return (
        "<html><body><table>"
        f"{body}"
        f'<tr><td class="Text">{pager}</td></tr>'
        "</table></body></html>"
    )


def detail_html(
    *,
    title: str = "Garderie Soleil",
    type_: str = "Garderie privée",
    contact: str = "Marie Tremblay",
    address: Sequence[str] = ("123 rue Principale", "Montréal, QC"),
    email: str = "info@soleil.ca",
    phone: str = "514-555-1234",
    places: Sequence[tuple] = (("2 places", "18 mois et +", "2014-05-01", "7.00 $"),),
    last_update: str = "2014-03-15",
) -> str:
    key = "k3yk3yk3yk3yk3yk3yk3yk3yk3yk3yk3y"
    address_html = "".join(f'<span class="Text">{line}</span>' for line in address)
    place_rows = "".join(
        "<tr>" + "".join(f'<td class="Text">{cell}</td>' for cell in row) + "</tr>" for row in places
    )
    return (
        "<html><body>"
        "<table><tr><td>"
        f'<table><tr><td><h1>{title}</h1><span class="TextBoldGreenSmall">{type_}</span></td></tr></table>'
        "<table><tr><td>"
        f'<div><span class="Contact">{contact}</span>{address_html}</div>'
        f"<div><a href=\"#\" onclick=\"return false;sm_wrap(1,'{key}','{obfuscate(email, key)}')\">Courriel</a></div>"
        f'<div><span class="Text">Téléphone : {phone}</span></div>'
        "</td></tr></table>"
        "</td></tr></table>"
        "<div>"
        '<table><tr><td><h3 class="HeaderBlue">Places disponibles</h3></td></tr></table>'
        "<table>"
        '<tr><td class="Text">Places</td><td class="Text">Âge</td>'
        '<td class="Text">Disponible</td><td class="Text">Prix</td></tr>'
        f"{place_rows}"
        "</table>"
        "</div>"
        "<div>"
        '<table><tr><td><h3 class="HeaderBlue">Mise à jour</h3></td></tr></table>'
        f"<p>Dernière mise à jour : <b>{last_update}</b></p>"
        "</div>"
        "</body></html>"
    )


# --------------------------------------------------------------------------- #
#                         In-memory collaborators                             #
# --------------------------------------------------------------------------- #


def summary(gid: int, distance: float = 1.0, title: Optional[str] = None) -> ItemSummary:
    return ItemSummary(id=gid, href=f"/garderie/{gid}-g.html", title=title or f"Garderie {gid}", distance=distance)


def detail(last_update: Optional[datetime] = datetime(2014, 3, 15), **overrides) -> ItemDetail:
    fields = dict(
        type="CPE",
        contact_name="Marie Tremblay",
        email="info@soleil.ca",
        phone="514-555-1234",
        address="123 rue Principale",
        last_update=last_update,
        place_info=(PlaceInfo(2, "18 mois et +", "2014-05-01", 7.0),),
    )
    fields.update(overrides)
    return ItemDetail(**fields)


class FakeFetcher:
    """Serves pre-built IndexPage/ItemDetail objects; records every call."""

    def __init__(
        self,
        pages: Sequence[Union[IndexPage, Exception]],
        details: Dict[str, Union[ItemDetail, Exception]],
        detail_delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.pages = list(pages)
        self.details = dict(details)
        self.detail_delays = detail_delays or {}
        self.index_calls: List[int] = []
        self.detail_calls: List[str] = []
        self.events: List[str] = []

    async def fetch_index_page(self, page_num: int):
        self.index_calls.append(page_num)
        self.events.append(f"index:{page_num}")
        await asyncio.sleep(0)
        page = self.pages[page_num - 1]
        if isinstance(page, Exception):
            raise page
        return page

    async def fetch_detail_page(self, href: str):
        self.detail_calls.append(href)
        await asyncio.sleep(self.detail_delays.get(href, 0))
        self.events.append(f"detail:{href}")
        item = self.details[href]
        if isinstance(item, Exception):
            raise item
        return item


class PassThroughParser:
    """The fake fetcher already returns parsed objects."""

    def parse_index(self, raw):
        return raw

    def parse_detail(self, raw):
        return raw


class FakeStore:
    """Dictionary-backed store producing real (transient) Garderie rows."""

    def __init__(self, fail_on_write: Iterable[int] = ()) -> None:
        self.records: Dict[int, Garderie] = {}
        self.fail_on_write = set(fail_on_write)
        self.creates: List[int] = []
        self.updates: List[int] = []

    async def find_by_id(self, item_id: int) -> Optional[Garderie]:
        await asyncio.sleep(0)
        return self.records.get(item_id)

    async def create(self, summary: ItemSummary, detail: ItemDetail) -> Garderie:
        await asyncio.sleep(0)
        if summary.id in self.fail_on_write:
            raise StoreError("create", summary.id, "disk full")
        if summary.id in self.records:
            raise StoreError("create", summary.id, "UNIQUE constraint failed: garderies.id")
        record = Garderie(id=summary.id, revision=0)
        record.assign(summary, detail)
        self.records[summary.id] = record
        self.creates.append(summary.id)
        return record

    async def update(self, existing: Garderie, summary: ItemSummary, detail: ItemDetail) -> Garderie:
        await asyncio.sleep(0)
        if summary.id in self.fail_on_write:
            raise StoreError("update", summary.id, "disk full")
        existing.assign(summary, detail)
        existing.revision = (existing.revision or 0) + 1
        self.updates.append(summary.id)
        return existing


# --------------------------------------------------------------------------- #
#                                  Fixtures                                   #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'garderies.db'}"

