"""
Security advisories from an RSS/Atom feed (default: Belgian CCB advisories).
"""

import re
from datetime import datetime

import feedparser
import requests

RSS_USER_AGENT = "DAEMON Dashboard RSS Fetcher"
REQUEST_TIMEOUT = 10


def _strip_tags(html: str) -> str:
    text = re.sub(r"<[^>]+>", " ", html or "")
    return re.sub(r"\s+", " ", text).strip()


def _published(entry) -> str:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return ""
    return datetime(*parsed[:6]).strftime("%d %b %Y")


def get_advisories(feed_url: str, limit: int = 10) -> list[dict]:
    r = requests.get(feed_url, headers={"User-Agent": RSS_USER_AGENT}, timeout=REQUEST_TIMEOUT)
    r.raise_for_status()

    feed = feedparser.parse(r.content)
    advisories = []
    for entry in feed.entries[:limit]:
        summary = _strip_tags(entry.get("summary", ""))
        advisories.append({
            "title": entry.get("title", "Untitled"),
            "link": entry.get("link", ""),
            "published": _published(entry),
            "summary": summary[:200] + ("..." if len(summary) > 200 else ""),
        })
    return advisories
