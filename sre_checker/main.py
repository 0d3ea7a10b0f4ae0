"""Entry point for sre-checker."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import uvicorn
from rich.console import Console
from rich.panel import Panel

from sre_checker.api.server import create_app
from sre_checker.config import ConfigError, Settings, load_settings
from sre_checker.monitor import build_scheduler, run_monitor

console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sre-checker",
        description="Check TCP and HTTP service status with hysteresis",
    )
    parser.add_argument("--config", type=Path, help="config file (default is $HOME/sre-checker.yaml)")
    parser.add_argument("--notify-email", help="Email to get notifications")
    parser.add_argument("--check-interval", type=float, help="Check interval in seconds")
    parser.add_argument("-t", "--timeout", type=float, help="Max timeout from service in seconds")
    parser.add_argument("--health-threshold", type=int, help="Consecutive successes to report UP")
    parser.add_argument("--unhealth-threshold", type=int, help="Consecutive failures to report DOWN")
    parser.add_argument(
        "--rss-feed", action="store_true", default=None, help="Run the RSS feed server",
    )
    parser.add_argument("--tcp-host", help="TCP server host to track")
    parser.add_argument("--tcp-port", type=int, help="TCP server port to track")
    parser.add_argument("--http-host", help="HTTP server host to track")
    parser.add_argument("--http-port", type=int, help="HTTP server port to track")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """CLI values that were actually given; unset flags fall through to config."""
    values = vars(args).copy()
    values.pop("config", None)
    return {k: v for k, v in values.items() if v is not None}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def run_server(settings: Settings) -> None:
    """Poll under the feed server; uvicorn's lifespan owns the scheduler."""
    scheduler = build_scheduler(settings)
    app = create_app(settings, scheduler.store, scheduler)
    console.print(
        Panel(f"RSS feed on http://{settings.feed_host}:{settings.feed_port}/rss", style="bold green")
    )
    uvicorn.run(
        app,
        host=settings.feed_host,
        port=settings.feed_port,
        log_level=settings.log_level.lower(),
    )


def run_polling(settings: Settings) -> None:
    scheduler = build_scheduler(settings)
    asyncio.run(run_monitor(scheduler))


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or "INFO")

    try:
        settings = load_settings(args.config, overrides_from_args(args))
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(2)

    logging.getLogger().setLevel(settings.log_level.upper())
    console.print(
        Panel(
            f"Tracking {settings.service_name}: tcp={settings.tcp_host}:{settings.tcp_port} "
            f"http={settings.http_host}:{settings.http_port}\n"
            f"interval={settings.check_interval}s timeout={settings.timeout}s "
            f"thresholds up={settings.health_threshold} down={settings.unhealth_threshold}",
            title="sre-checker",
            style="bold blue",
        )
    )

    if settings.rss_feed:
        run_server(settings)
    else:
        run_polling(settings)


if __name__ == "__main__":
    main()
