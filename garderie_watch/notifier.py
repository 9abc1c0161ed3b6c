# File: garderie_watch/notifier.py
"""garderie_watch.notifier: mails the records created or updated by a crawl run.

New garderies are listed first, then updated ones, each group by ascending
distance. Nothing is sent for an empty result.
"""

from __future__ import annotations

import asyncio
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape

from garderie_watch.config import MailConfig, UrlConfig
from garderie_watch.crawler.models import CrawlResult
from garderie_watch.logger import get_logger
from garderie_watch.store import PersistedRecord

__all__ = ["Mailer", "sort_records", "from_now", "build_report", "render_mail"]

MAIL_TEMPLATE = "mail.html.j2"

logger = get_logger("notifier")


def sort_records(records: Iterable[PersistedRecord]) -> List[PersistedRecord]:
    """New records first, then updated ones; ascending distance inside each group."""
    return sorted(records, key=lambda r: (0 if r.is_new else 1, r.distance))


def from_now(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Humanised age of a timestamp ("3 days ago")."""
    if moment is None:
        return "unknown"
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    seconds = (now - moment).total_seconds()
    future = seconds < 0
    seconds = abs(seconds)

    for limit, unit, size in (
        (45, None, 1),
        (45 * 60, "minute", 60),
        (22 * 3600, "hour", 3600),
        (26 * 86400, "day", 86400),
        (320 * 86400, "month", 30 * 86400),
    ):
        if seconds < limit:
            if unit is None:
                label = "a few seconds"
            else:
                amount = max(1, round(seconds / size))
                label = f"{amount} {unit}" + ("s" if amount > 1 else "")
            break
    else:
        amount = max(1, round(seconds / (365 * 86400)))
        label = f"{amount} year" + ("s" if amount > 1 else "")
    return f"in {label}" if future else f"{label} ago"


def build_report(
    result: CrawlResult, base_url: str, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Template context: sorted elements with first-new / first-updated markers."""
    elements: List[Dict[str, Any]] = []
    first_new_seen = first_updated_seen = False
    for record in sort_records(result.records):
        element = record.to_dict()
        element["first_new"] = record.is_new and not first_new_seen
        element["first_updated"] = not record.is_new and not first_updated_seen
        first_new_seen = first_new_seen or record.is_new
        first_updated_seen = first_updated_seen or not record.is_new
        element["moment"] = from_now(record.last_update, now)
        element["url"] = base_url.rstrip("/") + record.href
        elements.append(element)
    return {
        "elements": elements,
        "base_url": base_url,
        "new_count": len(result.new_records),
        "updated_count": len(result.updated_records),
        "failures": [f.describe() for f in result.failures],
    }


def render_mail(context: Dict[str, Any], template_dir: Path | str) -> Tuple[str, str]:
    """Render the HTML body and derive its plain-text alternative from the results table."""
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    html = env.get_template(MAIL_TEMPLATE).render(**context)
    table = BeautifulSoup(html, "html.parser").find("table")
    text = table.get_text("\n", strip=True) if table is not None else ""
    return html, text


class Mailer:
    """Sends the crawl result by e-mail through SMTP."""

    def __init__(self, mail_config: MailConfig, urls: UrlConfig) -> None:
        self.config = mail_config
        self.urls = urls

    def build_message(self, html: str, text: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = self.config.subject
        msg["From"] = self.config.sender
        msg["To"] = ", ".join(self.config.recipients)
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send_mail(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.config.host, self.config.port, timeout=30) as server:
            if self.config.use_tls:
                server.starttls()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.sendmail(self.config.sender, list(self.config.recipients), msg.as_string())

    async def mail_results(self, result: CrawlResult) -> int:
        """Mail the result of a crawl run; returns the number of records mailed."""
        logger.debug("Enter mail_results with %d results", len(result))
        if result.failures:
            logger.warning("%d garderies could not be processed this run", len(result.failures))
        if not result.records:
            logger.info("Nothing new, no mail sent")
            return 0
        if not self.config.enabled:
            logger.info("Mail disabled, %d results not sent", len(result))
            return 0

        context = build_report(result, self.urls.base)
        html, text = render_mail(context, self.config.template_dir)
        msg = self.build_message(html, text)
        logger.info("Mailing out %d results.", len(result))
        try:
            await asyncio.to_thread(self.send_mail, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail delivery failed: %s", exc)
            raise
        logger.info("Message sent to %s", ", ".join(self.config.recipients))
        return len(result)
