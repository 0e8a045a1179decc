# function_locks.py
"""
Time-boxed lock stored as one Firestore document per task name.

Lifecycle of _function_locks/{task}:
  - acquire:  transactional read-check-write; a record younger than the TTL blocks
  - success:  record deleted
  - failure:  timestamp refreshed and failure metadata merged in, so the task
              stays blocked for one more TTL window

There is no renewal while the guarded work runs; it has to finish well inside the TTL.
"""
import os
import time
import logging
from datetime import datetime, timezone

from google.cloud import firestore

from firestore_db import LOCKS_COLLECTION

# ----------------- Config -----------------
LOCK_TTL_MS = int(os.getenv("LOCK_TTL_MS", str(10 * 60 * 1000)))
# ------------------------------------------

log = logging.getLogger("ingestor.lock")

LOCK_ACTIVE = "lock_active"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _lock_ref(db, task_name: str):
    return db.collection(LOCKS_COLLECTION).document(task_name)


def _try_acquire(transaction, lock_ref, now_ms: int, ttl_ms: int) -> bool:
    snap = lock_ref.get(transaction=transaction)
    if snap.exists:
        age = now_ms - ((snap.to_dict() or {}).get("timestamp") or 0)
        if age < ttl_ms:
            return False

    transaction.set(lock_ref, {
        "timestamp": now_ms,
        "started_at": datetime.now(timezone.utc),
    })
    return True


def acquire_lock(db, task_name: str, ttl_ms: int = LOCK_TTL_MS) -> bool:
    acquire = firestore.transactional(_try_acquire)
    return acquire(db.transaction(), _lock_ref(db, task_name), _now_ms(), ttl_ms)


def release_lock_best_effort(db, task_name: str) -> None:
    """Delete the lock record. Never raises; a stale record expires with the TTL."""
    try:
        _lock_ref(db, task_name).delete()
    except Exception as e:
        log.warning("Failed to release lock %s: %s", task_name, e)


def mark_lock_failed(db, task_name: str, error: BaseException) -> None:
    """Refresh the lock timestamp and attach failure metadata. Never raises."""
    try:
        _lock_ref(db, task_name).set({
            "timestamp": _now_ms(),
            "failed_at": datetime.now(timezone.utc),
            "error": str(error),
        }, merge=True)
    except Exception as e:
        log.warning("Failed to mark lock %s as failed: %s", task_name, e)


def with_lock(db, task_name: str, fn, ttl_ms: int = LOCK_TTL_MS) -> dict:
    if not acquire_lock(db, task_name, ttl_ms):
        log.info("Lock active for %s, skipping execution", task_name)
        return {"skipped": True, "reason": LOCK_ACTIVE}

    try:
        result = fn()
    except Exception as e:
        log.error("Function %s failed: %s", task_name, e)
        mark_lock_failed(db, task_name, e)
        raise

    release_lock_best_effort(db, task_name)
    return {"skipped": False, "result": result}
