"""garderie_watch.report.html_report: HTML report rendered with the mail template."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from garderie_watch.crawler.models import CrawlResult
from garderie_watch.notifier import build_report, render_mail


def render_html(
    result: CrawlResult,
    base_url: str,
    template_dir: Union[Path, str],
    output_path: Union[Path, str],
) -> Path:
    """Render the crawl result with the mail template and save it to ``output_path``.

    Args:
        result: outcome of a crawl run.
        base_url: site root used to build absolute garderie links.
        template_dir: directory holding ``mail.html.j2``.
        output_path: path of the HTML file.

    Returns:
        Path of the saved HTML file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    html, _ = render_mail(build_report(result, base_url), template_dir)
    output_path.write_text(html, encoding="utf-8")

    return output_path
