# normalizer.py
import re
import hashlib
import unicodedata
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from articles import NormalizedArticle
from medium_feed import FeedEntry

MAX_TAGS = 10
SLUG_MAX_LEN = 100
MEDIUM_CDN_HOSTS = ("cdn-images-1.medium.com",)
MEDIUM_CDN_SIZE = "max/1024/"

_QUOTES_RE = re.compile(r"['\"`‘’“”]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_TOKEN_RE = re.compile(r"^[0-9a-f]{10,13}$")
_IMG_SRC_RE = re.compile(r'<img[^>]+src=["\']([^"\'>]+)["\']', re.I)
_CDN_SIZE_RE = re.compile(r"max/\d+/")


def dt_utc_now():
    return datetime.now(timezone.utc)


def slugify(title: str) -> str:
    s = unicodedata.normalize("NFD", (title or "").lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _QUOTES_RE.sub("", s)
    s = _NON_ALNUM_RE.sub("_", s)
    return s.strip("_")[:SLUG_MAX_LEN]


def short_hash(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:6]


def clean_link(link: str) -> str:
    """Drop the query string; keep the raw link if it isn't an absolute URL."""
    if not link:
        return link
    try:
        p = urlsplit(link)
    except ValueError:
        return link
    if not p.scheme or not p.netloc:
        return link
    return urlunsplit(p._replace(query=""))


def canonical_id_from_link(link: str) -> Optional[str]:
    """
    Medium post URLs end with a 10-13 char hex token, e.g.
      https://medium.com/@org/some-title-abc1234def56  ->  abc1234def56
    """
    if not link:
        return None
    cleaned = re.sub(r"[#?].*$", "", link)
    cleaned = re.sub(r"/$", "", cleaned)
    segment = cleaned.split("/")[-1]
    if not segment:
        return None
    token = segment.split("-")[-1]
    if _TOKEN_RE.match(token):
        return token
    return None


def article_id_for(title: str, link: str) -> str:
    token = canonical_id_from_link(link)
    if token:
        return f"article.{token}"
    return f"article.{slugify(title)}_{short_hash(link or title)}"


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """RFC-822 pubDate (ISO-8601 accepted too); naive values are taken as UTC."""
    if not value:
        return None
    value = value.strip()
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso_no_fraction(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_tag(tag: str) -> str:
    words = re.sub(r"[-_]+", " ", tag.lower()).split()
    return " ".join(w[0].upper() + w[1:] for w in words)


def normalize_tags(raw: Union[str, Iterable[str], None]) -> List[str]:
    if not raw:
        return []
    items = [raw] if isinstance(raw, str) else list(raw)

    tags = []
    seen = set()
    for t in items:
        formatted = format_tag(str(t).strip())
        if not formatted or formatted in seen:
            continue
        seen.add(formatted)
        tags.append(formatted)
    return tags[:MAX_TAGS]


def extract_first_image(html: str) -> Optional[str]:
    if not html:
        return None
    m = _IMG_SRC_RE.search(html)
    if not m:
        return None
    url = m.group(1)
    try:
        host = (urlsplit(url).netloc or "").lower()
    except ValueError:
        return url
    if host in MEDIUM_CDN_HOSTS:
        url = _CDN_SIZE_RE.sub(MEDIUM_CDN_SIZE, url, count=1)
    return url


def normalize_entry(entry: FeedEntry, now: Optional[datetime] = None) -> NormalizedArticle:
    title = (entry.title or "").strip() or "Untitled"
    link = clean_link(entry.link or "")
    published = parse_pub_date(entry.published) or now or dt_utc_now()

    return NormalizedArticle(
        id=article_id_for(title, link),
        title=title,
        medium_link=link,
        published_at=to_iso_no_fraction(published),
        article_tags=normalize_tags(entry.categories),
        image_link=extract_first_image(entry.content),
    )


def normalize_entries(entries: Iterable[FeedEntry], now: Optional[datetime] = None) -> List[NormalizedArticle]:
    now = now or dt_utc_now()
    return [normalize_entry(e, now) for e in entries]
