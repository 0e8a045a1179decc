# medium_feed.py
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

import feedparser
import requests

# ----------------- Config -----------------
FEED_URL = (os.getenv("MEDIUM_FEED_URL") or "https://chieac.medium.com/feed").strip()
FEED_SCAN_LIMIT = int(os.getenv("FEED_SCAN_LIMIT", "100"))
FETCH_TIMEOUT = int(os.getenv("FETCH_TIMEOUT", "15"))

USER_AGENT = "chieac-medium-ingest/1.0 (RSS reader)"
# ------------------------------------------

log = logging.getLogger("ingestor.feed")

_BENIGN_BOZO = (feedparser.CharacterEncodingOverride, feedparser.NonXMLContentType)


class FeedParseError(ValueError):
    """Raised when the feed body is not well-formed RSS."""


@dataclass
class FeedEntry:
    title: str
    link: str
    published: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    content: str = ""


class FeedFetcher:
    def __init__(self, feed_url: str = FEED_URL, timeout: int = FETCH_TIMEOUT, session=None):
        self.feed_url = feed_url
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self):
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def fetch(self) -> bytes:
        """
        Single GET of the feed; any non-2xx status raises requests.HTTPError.
        Returns raw bytes so feedparser decodes using the XML encoding declaration.
        """
        log.info("Fetching RSS feed from: %s", self.feed_url)
        r = self.session.get(
            self.feed_url,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "application/rss+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            timeout=self.timeout,
            allow_redirects=True,
        )
        r.raise_for_status()
        return r.content


def _categories(entry) -> List[str]:
    # feedparser exposes every <category> under entry.tags; entry.category is only the first
    terms = []
    for t in (entry.get("tags") or []):
        term = t.get("term") if isinstance(t, dict) else None
        if term:
            terms.append(term)
    if not terms and entry.get("category"):
        cat = entry.get("category")
        terms = list(cat) if isinstance(cat, (list, tuple)) else [cat]
    return terms


def _content(entry) -> str:
    """Prefer content:encoded, fall back to description."""
    for c in (entry.get("content") or []):
        if isinstance(c, dict) and c.get("value"):
            return c["value"]
    return entry.get("summary") or entry.get("description") or ""


def parse_feed(raw: Union[bytes, str], limit: int = FEED_SCAN_LIMIT) -> List[FeedEntry]:
    parsed = feedparser.parse(raw)

    # encoding/content-type notices are benign; anything else means the markup is broken
    if parsed.get("bozo") and not isinstance(parsed.get("bozo_exception"), _BENIGN_BOZO):
        raise FeedParseError(f"Malformed feed: {parsed.get('bozo_exception')}")

    entries = []
    for e in parsed.entries[:limit]:
        entries.append(FeedEntry(
            title=e.get("title") or "",
            link=e.get("link") or "",
            published=e.get("published") or e.get("updated"),
            categories=_categories(e),
            content=_content(e),
        ))

    log.info("Processing %d RSS items", len(entries))
    return entries
