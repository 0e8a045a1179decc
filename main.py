import logging
from typing import Optional

from articles import sync_articles_to_firestore
from firestore_db import get_db
from function_locks import LOCK_TTL_MS, with_lock
from medium_feed import FEED_SCAN_LIMIT, FeedFetcher, parse_feed
from normalizer import normalize_entries

SCHEDULED_TASK = "medium_ingest"
MANUAL_TASK = "medium_ingest_manual"

log = logging.getLogger("ingestor")


def perform_ingest(db, fetcher: FeedFetcher, scan_limit: int = FEED_SCAN_LIMIT) -> dict:
    """Fetch -> parse -> normalize -> upsert. Fetch and parse errors propagate."""
    log.info("Starting Medium RSS ingest")

    raw = fetcher.fetch()
    entries = parse_feed(raw, limit=scan_limit)
    articles = normalize_entries(entries)
    log.info("Successfully processed %d articles", len(articles))

    synced = sync_articles_to_firestore(db, articles)
    result = {"processed": len(articles), **synced}

    log.info("Ingest completed: %s", result)
    return result


def run_ingest(
    task_name: str,
    db=None,
    fetcher: Optional[FeedFetcher] = None,
    scan_limit: Optional[int] = None,
    ttl_ms: Optional[int] = None,
) -> dict:
    """
    Run one ingest under the task's lock.
    Returns {"skipped": True, "reason": ...} when another run holds the lock,
    otherwise {"skipped": False, "result": {...}}. Pipeline errors are re-raised.
    """
    db = db if db is not None else get_db()
    scan_limit = FEED_SCAN_LIMIT if scan_limit is None else scan_limit
    ttl_ms = LOCK_TTL_MS if ttl_ms is None else ttl_ms

    if fetcher is None:
        with FeedFetcher() as owned:
            return with_lock(db, task_name, lambda: perform_ingest(db, owned, scan_limit), ttl_ms=ttl_ms)
    return with_lock(db, task_name, lambda: perform_ingest(db, fetcher, scan_limit), ttl_ms=ttl_ms)


def run_scheduled_ingest(db=None, fetcher: Optional[FeedFetcher] = None) -> Optional[dict]:
    """Hourly job body: log the outcome, never raise."""
    try:
        outcome = run_ingest(SCHEDULED_TASK, db=db, fetcher=fetcher)
    except Exception:
        log.exception("Scheduled ingest failed")
        return None

    if outcome["skipped"]:
        log.info("Scheduled ingest skipped: %s", outcome.get("reason"))
    else:
        log.info("Scheduled ingest completed: %s", outcome.get("result"))
    return outcome


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    run_scheduled_ingest()
