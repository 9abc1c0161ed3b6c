# === FILE: garderie_watch/cli.py ===
#!/usr/bin/env python3
"""
Command-line entry point of GarderieWatch.

Commands:
  crawl     Run one crawl cycle, mail and/or save the changes
  config    Show the validated configuration

Global options:
  --config PATH       Path to the YAML/JSON config (default: configs/default.yaml)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only when omitted)
  --log-format FORMAT Logging format string

crawl options:
  --json PATH          Save a JSON report of the changes
  --html PATH          Save an HTML report of the changes
  --no-mail            Do not send the mail
  --crawl-timeout SEC  Timeout of the whole cycle (seconds)

Example:
  garderie-watch --config configs/default.yaml crawl --json reports/changes.json
"""
import asyncio
import json
import smtplib
import sys
from pathlib import Path

import click

from garderie_watch import __version__
from garderie_watch.config import load_config
from garderie_watch.engine import Engine
from garderie_watch.errors import GarderieWatchError
from garderie_watch.logger import DEFAULT_FORMAT, init_logging
from garderie_watch.report.html_report import render_html
from garderie_watch.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg="red", err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "--version", "-v", message="GarderieWatch, version %(version)s")
@click.option(
    "--config", "-c", "config_path",
    default="configs/default.yaml",
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to the YAML/JSON configuration file.",
)
@click.option(
    "--log-level", "log_level",
    default="INFO", show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Logging level",
)
@click.option(
    "--log-file", "log_file",
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help="Log file (stdout only when omitted)",
)
@click.option(
    "--log-format", "log_format",
    default=DEFAULT_FORMAT,
    show_default=True,
    help="Logging format string",
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """GarderieWatch command group."""
    init_logging(level=log_level, log_file=str(log_file) if log_file else None, log_format=log_format)
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f"Cannot load configuration: {e}")
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command("crawl", context_settings=CONTEXT_SETTINGS)
@click.option(
    "--json", "-j", "json_output",
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help="Save a JSON report of the changes",
)
@click.option(
    "--html", "-h", "html_output",
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help="Save an HTML report of the changes",
)
@click.option("--no-mail", "no_mail", is_flag=True, help="Do not send the mail")
@click.option(
    "--crawl-timeout", "crawl_timeout",
    type=float,
    default=None,
    help="Timeout of the whole cycle (seconds)",
)
@click.pass_context
def crawl(ctx, json_output, html_output, no_mail, crawl_timeout):
    """Run one crawl cycle."""
    cfg = ctx.obj["config"]
    engine = Engine(cfg)
    try:
        result = engine.run_cycle(send_mail=not no_mail, timeout=crawl_timeout)
    except asyncio.TimeoutError:
        print_error(f"Crawl did not finish within {crawl_timeout} seconds")
    except GarderieWatchError as e:
        print_error(f"Crawl failed: {e}")
    except (smtplib.SMTPException, OSError) as e:
        print_error(f"Mail delivery failed: {e}")

    click.echo(
        f"{len(result.new_records)} new, {len(result.updated_records)} updated, "
        f"{len(result.failures)} failed"
    )

    if json_output:
        try:
            saved_json = render_json(result, json_output)
            click.echo(f"JSON report: {saved_json}")
        except OSError as e:
            print_error(f"Cannot save JSON report: {e}")

    if html_output:
        try:
            saved_html = render_html(result, cfg.urls.base, cfg.mail.template_dir, html_output)
            click.echo(f"HTML report: {saved_html}")
        except Exception as e:
            print_error(f"Cannot save HTML report: {e}")


@cli.command("config", context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the current configuration as JSON."""
    cfg = ctx.obj["config"]
    click.echo(json.dumps(cfg.model_dump(mode="json"), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
