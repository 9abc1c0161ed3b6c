# File: garderie_watch/engine.py
"""garderie_watch.engine: runs a full cycle (crawl, then mail) for the CLI and schedulers."""

from __future__ import annotations

import asyncio
from typing import Optional

from garderie_watch.config import AppConfig, load_config
from garderie_watch.crawler.models import CrawlResult
from garderie_watch.logger import get_logger
from garderie_watch.notifier import Mailer
from garderie_watch.scanner import start_crawl

__all__ = ["Engine"]

logger = get_logger("engine")


class Engine:
    """Facade: load the config, crawl, mail the changes."""

    @staticmethod
    def load_config(path: Optional[str]) -> AppConfig:
        return load_config(path)

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.mailer = Mailer(config.mail, config.urls)

    async def cycle(self, *, send_mail: bool = True) -> CrawlResult:
        """Crawl once and hand the result to the mailer."""
        result = await start_crawl(self.config)
        if send_mail:
            await self.mailer.mail_results(result)
        return result

    def run_cycle(self, *, send_mail: bool = True, timeout: Optional[float] = None) -> CrawlResult:
        """Blocking entry point; ``timeout`` bounds the whole cycle (seconds)."""
        logger.info("Starting crawl cycle…")
        try:
            if timeout:
                return asyncio.run(asyncio.wait_for(self.cycle(send_mail=send_mail), timeout=timeout))
            return asyncio.run(self.cycle(send_mail=send_mail))
        except asyncio.TimeoutError:
            logger.error("Crawl cycle did not finish within %s seconds", timeout)
            raise
        except Exception as exc:
            logger.error("Crawl cycle failed: %s", exc)
            raise
