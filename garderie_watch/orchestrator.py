# File: garderie_watch/orchestrator.py
"""garderie_watch.orchestrator: one crawl cycle over the search results.

The cycle has two phases:

1. Index pagination. Pages are fetched strictly one after another, starting
   at page 1. Every summary within the distance cutoff immediately gets its
   own detail+reconcile task. Pagination stops when the server reports no
   further page, or as soon as a page contains a summary beyond the cutoff
   (results are sorted by ascending distance, so later pages are farther).
2. Join. Once pagination is over no task is added anymore; the closed set of
   tasks is awaited with a single gather.

Each detail+reconcile task fetches the details page, looks the garderie up in
the store and creates it, updates it when its last-update timestamp changed,
or leaves it alone. Created and updated records are appended to the result
as their tasks complete. A failing task is logged and recorded as a
:class:`TaskFailure`; it never aborts the run. A failing index page aborts
the run with :class:`CrawlError` once the tasks already started have settled.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Set, Tuple

from garderie_watch.crawler.models import (
    CrawlResult,
    IndexPage,
    ItemDetail,
    ItemSummary,
    TaskFailure,
)
from garderie_watch.errors import CrawlError, FetchError, GarderieWatchError, ParseError
from garderie_watch.logger import get_logger
from garderie_watch.parser.listing_parser import ListingParser
from garderie_watch.store import PersistedRecord, as_instant

__all__ = ["CrawlOrchestrator", "partition_by_distance", "needs_update"]


class Fetcher(Protocol):
    async def fetch_index_page(self, page_num: int) -> str: ...

    async def fetch_detail_page(self, href: str) -> str: ...


class Parser(Protocol):
    def parse_index(self, html: str) -> IndexPage: ...

    def parse_detail(self, html: str) -> ItemDetail: ...


class Store(Protocol):
    async def find_by_id(self, item_id: int) -> Optional[PersistedRecord]: ...

    async def create(self, summary: ItemSummary, detail: ItemDetail) -> PersistedRecord: ...

    async def update(
        self, existing: PersistedRecord, summary: ItemSummary, detail: ItemDetail
    ) -> PersistedRecord: ...


def partition_by_distance(
    summaries: Sequence[ItemSummary], max_distance_km: float
) -> Tuple[List[ItemSummary], List[ItemSummary]]:
    """Split summaries into (in range, out of range), keeping page order."""
    in_range: List[ItemSummary] = []
    out_of_range: List[ItemSummary] = []
    for summary in summaries:
        (in_range if summary.distance <= max_distance_km else out_of_range).append(summary)
    return in_range, out_of_range


def needs_update(stored: Optional[datetime], fetched: Optional[datetime]) -> bool:
    """A stored record is stale when it has no timestamp or a different instant."""
    if stored is None:
        return True
    return as_instant(stored) != as_instant(fetched)


class CrawlOrchestrator:
    """Runs a single crawl cycle; create a new instance for every cycle."""

    def __init__(
        self,
        fetcher: Fetcher,
        store: Store,
        max_distance_km: float,
        *,
        parser: Parser = ListingParser(),
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.parser = parser
        self.max_distance_km = max_distance_km
        self.logger = get_logger("orchestrator")
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self._pending: List[asyncio.Task[Optional[PersistedRecord]]] = []
        self._dispatched: Set[int] = set()
        self._closed = False
        self._started = False
        self._result = CrawlResult()

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    async def run(self) -> CrawlResult:
        """Walk the index pages, reconcile every in-range garderie, return the changes."""
        if self._started:
            raise RuntimeError("CrawlOrchestrator.run() may only be called once per instance")
        self._started = True
        self.logger.info("Starting crawl (cutoff %.1f km)", self.max_distance_km)

        try:
            async for page_num, in_range in self.index_pages():
                dispatched = sum(1 for summary in in_range if self._dispatch(summary))
                self.logger.debug("Page %d: %d detail tasks dispatched", page_num, dispatched)
        except Exception:
            await self._join()
            raise

        await self._join()
        self.logger.info(
            "Crawl finished: %d pages, %d new, %d updated, %d unchanged, %d failed",
            self._result.pages_fetched,
            len(self._result.new_records),
            len(self._result.updated_records),
            self._result.unchanged,
            len(self._result.failures),
        )
        return self._result

    async def index_pages(self) -> AsyncIterator[Tuple[int, List[ItemSummary]]]:
        """Yield ``(page number, in-range summaries)`` until a stop condition holds.

        The next page is fetched only after the consumer resumes the
        generator, i.e. once the current page has been dispatched.
        """
        page_num = 1
        while True:
            page = await self._fetch_index(page_num)
            self._result.pages_fetched += 1
            in_range, out_of_range = partition_by_distance(page.summaries, self.max_distance_km)
            yield page_num, in_range

            if out_of_range:
                self.logger.info(
                    "Page %d has %d garderies beyond %.1f km, stopping pagination",
                    page_num,
                    len(out_of_range),
                    self.max_distance_km,
                )
                return
            if not page.has_more:
                self.logger.info("Page %d is the last page", page_num)
                return
            page_num += 1

    async def reconcile(self, summary: ItemSummary) -> Optional[PersistedRecord]:
        """Fetch a garderie's details and create/update its stored record if needed.

        Returns the created or updated record, or ``None`` when nothing changed.
        """
        body = await self.fetcher.fetch_detail_page(summary.href)
        detail = self.parser.parse_detail(body)
        existing = await self.store.find_by_id(summary.id)

        if existing is None:
            self.logger.info("No result found for: [%s]. Saving new entry.", summary.id)
            return await self.store.create(summary, detail)
        if needs_update(existing.last_update, detail.last_update):
            self.logger.info("Changes to existing result found for: [%s]. Updating entry.", summary.id)
            return await self.store.update(existing, summary, detail)
        self.logger.info("No update to: [%s]. Not overwriting", summary.id)
        return None

    # ------------------------------------------------------------------ #
    # Internals                                                           #
    # ------------------------------------------------------------------ #

    async def _fetch_index(self, page_num: int) -> IndexPage:
        try:
            body = await self.fetcher.fetch_index_page(page_num)
            return self.parser.parse_index(body)
        except (FetchError, ParseError) as exc:
            self.logger.error("Index page %d failed: %s", page_num, exc)
            raise CrawlError(page_num, str(exc)) from exc

    def _dispatch(self, summary: ItemSummary) -> bool:
        if self._closed:
            raise RuntimeError("no task may be dispatched after pagination has ended")
        # a garderie listed twice in one run is reconciled once
        if summary.id in self._dispatched:
            self.logger.debug("Garderie [%s] already dispatched, skipping duplicate listing", summary.id)
            return False
        self._dispatched.add(summary.id)
        task = asyncio.create_task(self._run_task(summary), name=f"garderie-{summary.id}")
        self._pending.append(task)
        return True

    async def _run_task(self, summary: ItemSummary) -> Optional[PersistedRecord]:
        try:
            if self._semaphore is None:
                record = await self.reconcile(summary)
            else:
                async with self._semaphore:
                    record = await self.reconcile(summary)
        except GarderieWatchError as exc:
            self.logger.error("Garderie [%s] skipped: %s", summary.id, exc)
            self._result.failures.append(TaskFailure(summary, exc))
            return None
        except Exception as exc:
            self.logger.exception("Unexpected error while processing garderie [%s]", summary.id)
            self._result.failures.append(TaskFailure(summary, exc))
            return None

        if record is None:
            self._result.unchanged += 1
        else:
            self._result.records.append(record)
        return record

    async def _join(self) -> None:
        self._closed = True
        if self._pending:
            await asyncio.gather(*self._pending)
