# garderie_watch/crawler/models.py
"""
Data models for the GarderieWatch crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple

if TYPE_CHECKING:
    from garderie_watch.store import PersistedRecord


@dataclass(slots=True, frozen=True)
class ItemSummary:
    """One row of an index page: identity, relative link, title and distance (KM)."""

    id: int
    href: str
    title: str
    distance: float


@dataclass(slots=True, frozen=True)
class PlaceInfo:
    """A block of free places advertised on a details page."""

    count: int
    age_group: str
    available_from: str
    price_per_unit: float

    def as_dict(self) -> dict:
        return {
            "count": self.count,
            "age_group": self.age_group,
            "available_from": self.available_from,
            "price_per_unit": self.price_per_unit,
        }


@dataclass(slots=True, frozen=True)
class ItemDetail:
    """Full information parsed from a details page."""

    type: str
    contact_name: str
    email: str
    phone: str
    address: str
    last_update: Optional[datetime]
    place_info: Tuple[PlaceInfo, ...] = ()


@dataclass(slots=True, frozen=True)
class IndexPage:
    """Parsed index page: summaries in page order plus the continuation flag."""

    summaries: Tuple[ItemSummary, ...]
    has_more: bool


@dataclass(slots=True, frozen=True)
class TaskFailure:
    """A detail+reconcile task that did not produce a record."""

    summary: ItemSummary
    error: Exception

    def describe(self) -> str:
        return f"[{self.summary.id}] {self.summary.title}: {self.error}"


@dataclass(slots=True)
class CrawlResult:
    """Records created or updated during one run, in completion order."""

    records: List["PersistedRecord"] = field(default_factory=list)
    failures: List[TaskFailure] = field(default_factory=list)
    pages_fetched: int = 0
    unchanged: int = 0

    @property
    def new_records(self) -> List["PersistedRecord"]:
        return [r for r in self.records if r.is_new]

    @property
    def updated_records(self) -> List["PersistedRecord"]:
        return [r for r in self.records if not r.is_new]

    def ids(self) -> List[int]:
        return [r.id for r in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator["PersistedRecord"]:
        return iter(self.records)
