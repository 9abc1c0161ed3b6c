"""garderie_watch.report: JSON and HTML reports of a crawl run, used by the CLI."""

from garderie_watch.report.html_report import render_html
from garderie_watch.report.json_report import render_json, result_to_dict

__all__ = ["render_json", "render_html", "result_to_dict"]
