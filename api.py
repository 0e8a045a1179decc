# api.py
import os
# Silence noisy gRPC logs before importing Google libs
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GRPC_TRACE", "")

import logging
from atexit import register
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, jsonify, request
from flask_cors import CORS

from main import MANUAL_TASK, run_ingest, run_scheduled_ingest

# ----------------- Config -----------------
# Optional shared secret for the manual trigger (checked against x-api-key)
INGEST_API_KEY = os.getenv("MEDIUM_INGEST_API_KEY") or ""

# Gate the scheduler so it runs in exactly ONE process
RUN_JOBS = os.getenv("RUN_JOBS", "0") == "1"
# ------------------------------------------

# Flask
app = Flask(__name__)
app.url_map.strict_slashes = False
CORS(app)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("api")


# ----------------- Root (simple info) -----------------
@app.route("/", methods=["GET"])
def root():
    return jsonify({
        "ok": True,
        "service": "chieac-medium-ingest",
        "endpoints": ["/fetch_now", "/status", "/health"],
    })


# ----------------- Manual ingest -----------------
@app.route("/fetch_now", methods=["GET", "POST"])
def fetch_now():
    if INGEST_API_KEY and request.headers.get("x-api-key") != INGEST_API_KEY:
        return jsonify({"error": "Forbidden: Invalid API key"}), 403

    log.info("Manual ingest triggered via HTTP request")
    try:
        outcome = run_ingest(MANUAL_TASK)
    except Exception as e:
        log.exception("Manual ingest failed")
        return jsonify({
            "success": False,
            "message": "Ingest failed",
            "error": str(e) or e.__class__.__name__,
        }), 500

    if outcome["skipped"]:
        reason = outcome.get("reason")
        return jsonify({
            "success": False,
            "message": f"Ingest already running or recently completed. Reason: {reason}",
            "skipped": True,
            "reason": reason,
        }), 409

    return jsonify({
        "success": True,
        "message": "Medium RSS ingest completed successfully",
        "data": outcome.get("result"),
        "skipped": False,
    }), 200


# ----------------- Status / Health -----------------
@app.get("/status")
def status():
    return jsonify({
        "success": True,
        "message": "Medium ingest functions are healthy",
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "functions": {
            "hourlyMediumIngest": "Scheduled every 60 minutes" if RUN_JOBS else "Scheduler disabled in this process",
            "fetchMediumNow": "Available for manual triggers",
            "getIngestStatus": "Available for status checks",
        },
    })


@app.get("/health")
def health():
    return "ok"


# ----------------- Scheduler (runs under gunicorn) -----------------
def start_scheduler():
    sched = BackgroundScheduler(daemon=True, timezone="UTC")
    # Top of every hour
    sched.add_job(run_scheduled_ingest, "cron", minute="0", id="hourly_medium_ingest",
                  max_instances=1, coalesce=True)
    sched.start()
    log.info("Scheduler started (cron at :00 UTC)")
    register(lambda: sched.shutdown(wait=False))
    return sched


if RUN_JOBS:
    try:
        start_scheduler()
    except Exception:
        log.exception("Failed to start APScheduler")


# ----------------- Local dev runner -----------------
if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
