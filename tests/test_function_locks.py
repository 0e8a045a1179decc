"""Tests for the Firestore-backed function lock."""

from unittest.mock import patch

import pytest

from function_locks import (
    LOCK_TTL_MS,
    acquire_lock,
    mark_lock_failed,
    release_lock_best_effort,
    with_lock,
)

TASK = "medium_ingest"
NOW_MS = 1_700_000_000_000


@pytest.fixture
def fixed_clock():
    with patch("function_locks._now_ms", return_value=NOW_MS):
        yield


class TestAcquireLock:
    def test_first_acquire_writes_record(self, fake_db, fixed_clock):
        assert acquire_lock(fake_db, TASK) is True

        record = fake_db.get("_function_locks", TASK)
        assert record["timestamp"] == NOW_MS
        assert "started_at" in record

    def test_fresh_lock_blocks_back_to_back_attempt(self, fake_db, fixed_clock):
        """The fake runs each transaction body inline, so this checks two acquisitions in sequence."""
        outcomes = [acquire_lock(fake_db, TASK), acquire_lock(fake_db, TASK)]

        assert sorted(outcomes) == [False, True]

    def test_expired_lock_is_reacquired(self, fake_db, fixed_clock):
        stale = NOW_MS - LOCK_TTL_MS - 1
        fake_db.put("_function_locks", TASK, {"timestamp": stale, "error": "boom"})

        assert acquire_lock(fake_db, TASK) is True
        assert fake_db.get("_function_locks", TASK)["timestamp"] == NOW_MS

    def test_locks_are_per_task(self, fake_db, fixed_clock):
        assert acquire_lock(fake_db, "medium_ingest") is True
        assert acquire_lock(fake_db, "medium_ingest_manual") is True


class TestBestEffortHelpers:
    def test_release_deletes_record(self, fake_db, fixed_clock):
        acquire_lock(fake_db, TASK)

        release_lock_best_effort(fake_db, TASK)

        assert fake_db.get("_function_locks", TASK) is None

    def test_release_failure_never_raises(self, fake_db):
        fake_db.fail_deletes.add(("_function_locks", TASK))

        release_lock_best_effort(fake_db, TASK)

    def test_mark_failed_merges_metadata(self, fake_db, fixed_clock):
        fake_db.put("_function_locks", TASK, {"timestamp": 1, "started_at": "earlier"})

        mark_lock_failed(fake_db, TASK, RuntimeError("feed down"))

        record = fake_db.get("_function_locks", TASK)
        assert record["timestamp"] == NOW_MS
        assert record["error"] == "feed down"
        assert record["started_at"] == "earlier"
        assert "failed_at" in record

    def test_mark_failed_never_raises(self, fake_db):
        fake_db.fail_writes.add(("_function_locks", TASK))

        mark_lock_failed(fake_db, TASK, RuntimeError("feed down"))


class TestWithLock:
    def test_success_returns_result_and_releases(self, fake_db):
        outcome = with_lock(fake_db, TASK, lambda: {"created": 2})

        assert outcome == {"skipped": False, "result": {"created": 2}}
        assert fake_db.get("_function_locks", TASK) is None

    def test_skips_when_lock_is_held(self, fake_db, fixed_clock):
        acquire_lock(fake_db, TASK)
        calls = []

        outcome = with_lock(fake_db, TASK, lambda: calls.append(1))

        assert outcome == {"skipped": True, "reason": "lock_active"}
        assert calls == []

    def test_failure_keeps_lock_and_reraises(self, fake_db, fixed_clock):
        def boom():
            raise ValueError("parse failed")

        with pytest.raises(ValueError, match="parse failed"):
            with_lock(fake_db, TASK, boom)

        record = fake_db.get("_function_locks", TASK)
        assert record["error"] == "parse failed"
        assert with_lock(fake_db, TASK, lambda: "again")["skipped"] is True

    def test_release_failure_does_not_change_success(self, fake_db):
        fake_db.fail_deletes.add(("_function_locks", TASK))

        outcome = with_lock(fake_db, TASK, lambda: "done")

        assert outcome == {"skipped": False, "result": "done"}
