# === FILE: garderie_watch/scanner.py ===
"""
Wrapper that runs one crawl cycle with real collaborators.
"""
from garderie_watch.config import AppConfig
from garderie_watch.crawler.fetcher import PageFetcher, open_session
from garderie_watch.crawler.models import CrawlResult
from garderie_watch.crawler.query import build_query_params
from garderie_watch.orchestrator import CrawlOrchestrator
from garderie_watch.parser.listing_parser import ListingParser
from garderie_watch.store import RecordStore


async def start_crawl(cfg: AppConfig) -> CrawlResult:
    """
    Open the record store and an HTTP session, run a fresh orchestrator and
    close both again.

    Parameters
    ----------
    cfg : AppConfig
        Crawl configuration.

    Returns
    -------
    CrawlResult
        Records created or updated by this run.
    """
    async with RecordStore(cfg.database.url) as store, open_session(cfg) as session:
        fetcher = PageFetcher(session, cfg.urls, build_query_params(cfg.query))
        orchestrator = CrawlOrchestrator(
            fetcher,
            store,
            cfg.query.max_distance_in_km,
            parser=ListingParser(),
            max_concurrency=cfg.http.max_concurrency,
        )
        return await orchestrator.run()

__all__ = ["start_crawl"]
