"""HTML parsing of magarderie.com pages.

Two page shapes are understood:

* the search results page (``SOut=list`` layout) — one row per garderie with
  a ``.TextResult`` cell holding the ``a.LinkResult`` link and a last cell
  holding the distance (``"2.4 km"``); the pager ends with ``Suiv.>>`` when
  another page exists;
* the garderie details page — title/contact tables next to the ``<h1>``,
  then two ``h3.HeaderBlue`` blocks: free places (four cells per row) and
  the date of the last update.

Both parsers are pure functions of the markup. Any structural surprise is
raised as :class:`~garderie_watch.errors.ParseError`.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime
from typing import List, Optional, Set

from bs4 import BeautifulSoup
from bs4.element import Tag

from garderie_watch.crawler.models import IndexPage, ItemDetail, ItemSummary, PlaceInfo
from garderie_watch.errors import ParseError

__all__: Sequence[str] = (
    "ListingParser",
    "parse_index",
    "parse_detail",
    "parse_last_update",
    "decode_email",
)

HAS_MORE_TEXT = "Suiv.>>"

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")
_INT_RE = re.compile(r"\d+")
_SM_WRAP_RE = re.compile(
    r"sm_wrap\(\s*[^,]*,\s*(['\"])(?P<key>(?:\\.|(?!\1).)*)\1\s*,"
    r"\s*(['\"])(?P<data>(?:\\.|(?!\3).)*)\3\s*\)"
)
_JS_ESCAPE_RE = re.compile(r"\\(x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}|.)")
_JS_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}

_FRENCH_MONTHS = {
    "janvier": 1, "février": 2, "fevrier": 2, "mars": 3, "avril": 4, "mai": 5, "juin": 6,
    "juillet": 7, "août": 8, "aout": 8, "septembre": 9, "octobre": 10, "novembre": 11,
    "décembre": 12, "decembre": 12,
}
_FRENCH_DATE_RE = re.compile(r"^(\d{1,2})(?:er)?\s+([^\s\d]+)\s+(\d{4})$", re.IGNORECASE)
_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _element_children(node: Tag) -> List[Tag]:
    return [c for c in node.children if isinstance(c, Tag)]


def _text(node: Optional[Tag]) -> str:
    return node.get_text() if node is not None else ""


# ---------------------------------------------------------------------------
# Index page
# ---------------------------------------------------------------------------


def _parse_distance(text: str) -> float:
    token = text.strip().split(" ")[0]
    match = _NUMBER_RE.match(token)
    if match is None:
        raise ParseError("index page", f"distance {text.strip()!r} is not a number")
    return float(match.group(0).replace(",", "."))


def _parse_summary(row: Tag) -> ItemSummary:
    link = row.select_one(".TextResult a.LinkResult")
    if link is None or not link.get("href"):
        raise ParseError("index page", "result row without a.LinkResult link")
    href = str(link["href"]).strip()
    page = href.rstrip("/").split("/")[-1]
    raw_id = page.split("-")[0]
    if not raw_id.isdigit():
        raise ParseError("index page", f"cannot read garderie id from {href!r}")
    cells = _element_children(row)
    distance = _parse_distance(_text(cells[-1]))
    return ItemSummary(id=int(raw_id), href=href, title=link.get_text().strip(), distance=distance)


def parse_index(html: str) -> IndexPage:
    """Parse a search results page into summaries (page order) and the ``has_more`` flag."""
    soup = _soup(html)
    rows: List[Tag] = []
    seen: Set[int] = set()
    for cell in soup.select(".TextResult"):
        row = cell.parent
        if isinstance(row, Tag) and id(row) not in seen:
            seen.add(id(row))
            rows.append(row)

    pager = soup.select("td.Text span")
    has_more = bool(pager) and pager[-1].get_text().strip() == HAS_MORE_TEXT

    return IndexPage(summaries=tuple(_parse_summary(row) for row in rows), has_more=has_more)


# ---------------------------------------------------------------------------
# Details page
# ---------------------------------------------------------------------------


def _js_unescape(value: str) -> str:
    def repl(match: re.Match[str]) -> str:
        seq = match.group(1)
        if seq[0] in "xu" and len(seq) > 1:
            return chr(int(seq[1:], 16))
        return _JS_SIMPLE_ESCAPES.get(seq, seq)

    return _JS_ESCAPE_RE.sub(repl, value)


def decode_email(onclick: Optional[str]) -> str:
    """Decode the XOR-obfuscated address hidden in the mail link's ``onclick`` script.

    The script calls ``sm_wrap(n, key, data)``; each character of *data* is
    XOR-ed with the character of *key* at the same position.
    """
    if not onclick or ";" not in onclick:
        return ""
    script = onclick.split(";", 1)[1]
    match = _SM_WRAP_RE.search(script)
    if match is None:
        return ""
    key = _js_unescape(match.group("key"))
    data = _js_unescape(match.group("data"))
    return "".join(
        chr((ord(key[i]) if i < len(key) else 0) ^ ord(ch)) for i, ch in enumerate(data)
    )


def parse_last_update(text: str) -> Optional[datetime]:
    """Turn the "last update" label into a datetime; an empty label means no date."""
    value = " ".join(text.split())
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    match = _FRENCH_DATE_RE.match(value)
    if match:
        month = _FRENCH_MONTHS.get(match.group(2).lower())
        if month is not None:
            return datetime(int(match.group(3)), month, int(match.group(1)))
    raise ParseError("details page", f"unrecognised last update date {value!r}")


def _parse_places(cells: List[Tag]) -> tuple[PlaceInfo, ...]:
    places: List[PlaceInfo] = []
    for i in range(0, len(cells) - len(cells) % 4, 4):
        count_text = cells[i].get_text().strip()
        price_text = cells[i + 3].get_text().strip()
        count = _INT_RE.search(count_text)
        price = _NUMBER_RE.search(price_text)
        if count is None or price is None:
            raise ParseError("details page", f"malformed places row {count_text!r} / {price_text!r}")
        places.append(
            PlaceInfo(
                count=int(count.group(0)),
                age_group=cells[i + 1].get_text().strip(),
                available_from=cells[i + 2].get_text().strip(),
                price_per_unit=float(price.group(0).replace(",", ".")),
            )
        )
    return tuple(places)


def _block_container(header: Tag) -> Tag:
    table = header.find_parent("table")
    if table is None or not isinstance(table.parent, Tag):
        raise ParseError("details page", "section header outside of a table")
    return table.parent


def parse_detail(html: str) -> ItemDetail:
    """Parse a garderie details page."""
    soup = _soup(html)

    h1 = soup.find("h1")
    title_table = h1.find_parent("table") if isinstance(h1, Tag) else None
    title_row = title_table.find_parent("tr") if title_table is not None else None
    if title_row is None:
        raise ParseError("details page", "no title block around <h1>")
    tables = title_row.find_all("table")
    if len(tables) < 2:
        raise ParseError("details page", "contact table is missing")

    contact_node = tables[1].find("td")
    contact_parts = _element_children(contact_node) if isinstance(contact_node, Tag) else []
    if len(contact_parts) < 3:
        raise ParseError("details page", "contact block is incomplete")
    name_node, email_node, phone_node = contact_parts[0], contact_parts[1], contact_parts[2]

    phone_label = _text(phone_node.select_one(".Text"))
    if ":" not in phone_label:
        raise ParseError("details page", f"unexpected phone label {phone_label!r}")

    email_link = email_node.find("a")
    onclick = email_link.get("onclick") if isinstance(email_link, Tag) else None

    headers = soup.select("h3.HeaderBlue")
    if len(headers) < 2:
        raise ParseError("details page", "places or last update section is missing")
    place_cells = _block_container(headers[0]).select(".Text")[4:]
    last_update_text = " ".join(b.get_text() for b in _block_container(headers[1]).find_all("b"))

    return ItemDetail(
        type=_text(tables[0].select_one(".TextBoldGreenSmall")).strip(),
        contact_name=_text(name_node.select_one(".Contact")).strip(),
        email=decode_email(str(onclick) if onclick else None),
        phone=phone_label.split(":")[1].strip(),
        address="\n".join(node.get_text().strip() for node in name_node.select(".Text")),
        last_update=parse_last_update(last_update_text),
        place_info=_parse_places(place_cells),
    )


class ListingParser:
    """Parser collaborator handed to the orchestrator."""

    parse_index = staticmethod(parse_index)
    parse_detail = staticmethod(parse_detail)
