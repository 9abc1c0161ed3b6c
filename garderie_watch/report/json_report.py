# garderie_watch/report/json_report.py

"""
JSON report of a crawl run.

Serialises the created/updated records and the failed garderies to a file.
"""
import json
from pathlib import Path
from typing import Any, Dict

from garderie_watch.crawler.models import CrawlResult


def result_to_dict(result: CrawlResult) -> Dict[str, Any]:
    return {
        "pages_fetched": result.pages_fetched,
        "unchanged": result.unchanged,
        "records": [record.to_dict() for record in result.records],
        "failures": [
            {"id": f.summary.id, "title": f.summary.title, "href": f.summary.href, "error": str(f.error)}
            for f in result.failures
        ],
    }


def render_json(result: CrawlResult, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Save ``result`` as JSON at ``output_path``.

    :param result: outcome of a crawl run
    :param output_path: path of the JSON file
    :return: Path of the saved file
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", encoding="utf-8") as f:
        json.dump(result_to_dict(result), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
