# articles.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from firestore_db import ARTICLES_COLLECTION

log = logging.getLogger("ingestor.sync")


@dataclass
class NormalizedArticle:
    id: str
    title: str
    medium_link: str
    published_at: str  # ISO-8601, "Z" suffix, whole seconds
    article_tags: List[str] = field(default_factory=list)
    image_link: Optional[str] = None

    def to_firestore(self) -> dict:
        """Document payload; published_at becomes a native Firestore timestamp."""
        return {
            "id": self.id,
            "title": self.title,
            "medium_link": self.medium_link,
            "image_link": self.image_link,
            "article_tags": list(self.article_tags),
            "published_at": datetime.fromisoformat(
                self.published_at.replace("Z", "+00:00")
            ).astimezone(timezone.utc),
        }


def _needs_fill(existing: dict, article: NormalizedArticle) -> bool:
    # only empty -> present transitions; present values are never replaced
    if not existing.get("image_link") and article.image_link:
        return True
    if not existing.get("article_tags") and article.article_tags:
        return True
    return False


def _fill_payload(existing: dict, data: dict) -> dict:
    # title, link and timestamp are always re-sent; stored image and tags are left alone
    if existing.get("image_link"):
        data.pop("image_link", None)
    if existing.get("article_tags"):
        data.pop("article_tags", None)
    return data


def sync_articles_to_firestore(db, articles: List[NormalizedArticle]) -> dict:
    """
    Upsert normalized articles one by one, in feed order.
      - new id      -> full write, counted as created
      - existing id -> merge-write only when it fills a missing image or tag list
    A failure on one article is logged and the rest of the batch continues.
    """
    coll = db.collection(ARTICLES_COLLECTION)
    created = updated = 0

    log.info("Syncing %d articles to Firestore", len(articles))

    for article in articles:
        if not article.id or not article.published_at:
            log.warning("Skipping article with missing ID or published_at: %s", article.title)
            continue

        ref = coll.document(article.id)
        try:
            snap = ref.get()
            data = article.to_firestore()

            if snap.exists:
                existing = snap.to_dict() or {}
                if _needs_fill(existing, article):
                    ref.set(_fill_payload(existing, data), merge=True)
                    updated += 1
                    log.info("Updated article: %s", article.title)
                else:
                    log.info("Article already up to date: %s", article.title)
            else:
                ref.set(data)
                created += 1
                log.info("Created new article: %s", article.title)
        except Exception:
            log.exception("Failed to sync article %s", article.title)

    log.info("Firestore sync complete. created=%d updated=%d", created, updated)
    return {"created": created, "updated": updated, "total": len(articles)}
