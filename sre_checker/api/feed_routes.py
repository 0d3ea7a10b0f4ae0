"""Status feed routes: read-only views over the status store.

Endpoints:
  GET /rss         RSS 2.0 feed, one item per channel
  GET /api/status  JSON verdict per channel + tracker counters
  GET /health      liveness
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any

from fastapi import APIRouter, Request, Response

from sre_checker.health.store import StatusEntry
from sre_checker.health.tracker import Verdict

logger = logging.getLogger(__name__)

feed_router = APIRouter()

RSS_MEDIA_TYPE = "application/rss+xml; charset=UTF-8"

_WAITING = "WAITING FOR STATUS"


def status_label(verdict: Verdict) -> str:
    if verdict == Verdict.UNKNOWN:
        return _WAITING
    return verdict.value.upper()


def render_rss(
    entries: Mapping[str, StatusEntry],
    service_name: str,
    links: Mapping[str, str],
    feed_link: str = "/rss",
) -> bytes:
    """Serialize a status snapshot as an RSS 2.0 document."""
    rss = ET.Element("rss", version="2.0")
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = f"{service_name} Services Monitor"
    ET.SubElement(channel, "link").text = feed_link
    ET.SubElement(channel, "description").text = (
        f"This is RSS Feeds with status from {service_name} services."
    )
    ET.SubElement(channel, "lastBuildDate").text = format_datetime(datetime.now(timezone.utc))

    for name, entry in entries.items():
        item = ET.SubElement(channel, "item")
        ET.SubElement(item, "title").text = (
            f"{service_name} {name.upper()} Service is {status_label(entry.verdict)}"
        )
        ET.SubElement(item, "link").text = links.get(name, "")
        ET.SubElement(item, "guid", isPermaLink="false").text = (
            f"{name}-{entry.verdict.value}-{int(entry.changed_at.timestamp())}"
        )
        ET.SubElement(item, "pubDate").text = format_datetime(entry.changed_at)

    return ET.tostring(rss, encoding="utf-8", xml_declaration=True)


@feed_router.get("/rss")
def rss_feed(request: Request) -> Response:
    """RSS feed of the current verdict of every channel."""
    settings = request.app.state.settings
    body = render_rss(
        request.app.state.store.entries(),
        service_name=settings.service_name,
        links=settings.links,
        feed_link=str(request.url),
    )
    return Response(content=body, media_type=RSS_MEDIA_TYPE)


@feed_router.get("/api/status")
def api_status(request: Request) -> dict[str, Any]:
    """JSON view: verdict per channel, plus tracker counters when polling."""
    entries = request.app.state.store.entries()
    data: dict[str, Any] = {
        "status": {name: e.verdict.value for name, e in entries.items()},
        "changed_at": {name: e.changed_at.isoformat() for name, e in entries.items()},
    }
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        data["channels"] = scheduler.status()
        data["running"] = scheduler.running
    return data


@feed_router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
