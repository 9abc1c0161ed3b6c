# File: garderie_watch/store.py
"""garderie_watch.store: persistence of garderie records (SQLAlchemy asyncio).

One row per garderie id. ``revision`` is 0 for a row created by the current
run and grows by one on every update, which lets the notifier tell new
entries from changed ones.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from garderie_watch.crawler.models import ItemDetail, ItemSummary, PlaceInfo
from garderie_watch.errors import StoreError
from garderie_watch.logger import get_logger

__all__ = ["Base", "Garderie", "PersistedRecord", "RecordStore", "as_instant"]


def as_instant(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a timestamp to naive UTC so stored and parsed values compare as instants."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Garderie(Base):
    """Durable representation of a garderie."""

    __tablename__ = "garderies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    href: Mapped[str] = mapped_column(String(512))
    title: Mapped[str] = mapped_column(String(512))
    distance: Mapped[float] = mapped_column(Float)
    type: Mapped[str] = mapped_column(String(256), default="")
    contact_name: Mapped[str] = mapped_column(String(256), default="")
    email: Mapped[str] = mapped_column(String(256), default="")
    phone: Mapped[str] = mapped_column(String(64), default="")
    address: Mapped[str] = mapped_column(Text, default="")
    last_update: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    places: Mapped[List[dict]] = mapped_column(JSON, default=list)
    date_updated: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    revision: Mapped[int] = mapped_column(Integer, default=0)

    @property
    def is_new(self) -> bool:
        return self.revision == 0

    @property
    def place_info(self) -> Tuple[PlaceInfo, ...]:
        return tuple(PlaceInfo(**p) for p in self.places or [])

    def assign(self, summary: ItemSummary, detail: ItemDetail) -> None:
        """Overwrite every mutable field with freshly fetched content."""
        self.href = summary.href
        self.title = summary.title
        self.distance = summary.distance
        self.type = detail.type
        self.contact_name = detail.contact_name
        self.email = detail.email
        self.phone = detail.phone
        self.address = detail.address
        self.last_update = as_instant(detail.last_update)
        self.places = [p.as_dict() for p in detail.place_info]
        self.date_updated = _utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "href": self.href,
            "title": self.title,
            "distance": self.distance,
            "type": self.type,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "last_update": self.last_update.isoformat() if self.last_update else None,
            "places": list(self.places or []),
            "date_updated": self.date_updated.isoformat() if self.date_updated else None,
            "revision": self.revision,
            "is_new": self.is_new,
        }

    def __repr__(self) -> str:
        return f"<Garderie id={self.id} title={self.title!r} revision={self.revision}>"


PersistedRecord = Garderie


class RecordStore:
    """Async record store: lookup by id, create, update in place."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo)
        self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)
        # SQLite accepts a single writer at a time
        self._write_lock = asyncio.Lock()
        self.logger = get_logger("store")

    async def __aenter__(self) -> RecordStore:
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def init(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError("init", None, str(exc)) from exc
        self.logger.info("Record store ready at %s", self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        self.logger.info("Closing record store")
        await self.engine.dispose()

    async def find_by_id(self, item_id: int) -> Optional[PersistedRecord]:
        try:
            async with self._sessions() as session:
                return await session.get(Garderie, item_id)
        except SQLAlchemyError as exc:
            raise StoreError("lookup", item_id, str(exc)) from exc

    async def create(self, summary: ItemSummary, detail: ItemDetail) -> PersistedRecord:
        record = Garderie(id=summary.id, revision=0)
        record.assign(summary, detail)
        try:
            async with self._write_lock, self._sessions() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("create", summary.id, str(exc)) from exc
        return record

    async def update(
        self, existing: PersistedRecord, summary: ItemSummary, detail: ItemDetail
    ) -> PersistedRecord:
        """Overwrite ``existing`` in place and persist it; identity is preserved."""
        try:
            async with self._write_lock, self._sessions() as session:
                session.add(existing)
                existing.assign(summary, detail)
                existing.revision = (existing.revision or 0) + 1
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("update", existing.id, str(exc)) from exc
        return existing

    async def count(self) -> int:
        try:
            async with self._sessions() as session:
                return int(await session.scalar(select(func.count()).select_from(Garderie)) or 0)
        except SQLAlchemyError as exc:
            raise StoreError("count", None, str(exc)) from exc

    async def all(self) -> List[PersistedRecord]:
        try:
            async with self._sessions() as session:
                rows = await session.scalars(select(Garderie).order_by(Garderie.distance))
                return list(rows)
        except SQLAlchemyError as exc:
            raise StoreError("list", None, str(exc)) from exc
