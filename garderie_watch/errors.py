# File: garderie_watch/errors.py
"""garderie_watch.errors: exception hierarchy shared by fetcher, parser, store and orchestrator."""

from __future__ import annotations

from typing import Optional

__all__ = ["GarderieWatchError", "FetchError", "ParseError", "StoreError", "CrawlError"]


class GarderieWatchError(Exception):
    """Base class for every error raised by the project."""


class FetchError(GarderieWatchError):
    """Network or HTTP failure while fetching a page."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"Failed to fetch {url}{suffix}: {reason}")


class ParseError(GarderieWatchError):
    """The page does not have the expected structure."""

    def __init__(self, what: str, reason: str) -> None:
        self.what = what
        self.reason = reason
        super().__init__(f"Cannot parse {what}: {reason}")


class StoreError(GarderieWatchError):
    """Lookup, create or update failure in the record store."""

    def __init__(self, operation: str, item_id: object, reason: str) -> None:
        self.operation = operation
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Store {operation} failed for [{item_id}]: {reason}")


class CrawlError(GarderieWatchError):
    """Fatal run failure: an index page could not be fetched or parsed."""

    def __init__(self, page_number: int, reason: str) -> None:
        self.page_number = page_number
        self.reason = reason
        super().__init__(f"Crawl aborted on index page {page_number}: {reason}")
