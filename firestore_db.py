# firestore_db.py
import os
import json
import logging

from google.cloud import firestore
from google.oauth2 import service_account

# ----------------- Config -----------------
PROJECT_ID = (os.getenv("GOOGLE_CLOUD_PROJECT") or "").strip()
CREDS_PATH = (os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or "").strip()

ARTICLES_COLLECTION = "articles"
LOCKS_COLLECTION = "_function_locks"
# ------------------------------------------

log = logging.getLogger("ingestor.db")

_client = None


def _is_service_account_json(path: str) -> bool:
    try:
        if not path or not os.path.exists(path):
            return False
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return bool(
            data.get("type") == "service_account"
            and data.get("client_email")
            and data.get("token_uri")
        )
    except (OSError, ValueError):
        return False


def make_client(project_id: str = PROJECT_ID, creds_path: str = CREDS_PATH):
    """Build a Firestore client from a service-account file, or fall back to ADC."""
    if _is_service_account_json(creds_path):
        creds = service_account.Credentials.from_service_account_file(creds_path)
        log.info("Firestore: using service account at %s", creds_path)
        return firestore.Client(project=(project_id or creds.project_id), credentials=creds)
    log.info("Firestore: using Application Default Credentials")
    return firestore.Client(project=(project_id or None))


def get_db():
    """Process-wide client, created on first use."""
    global _client
    if _client is None:
        _client = make_client()
    return _client
