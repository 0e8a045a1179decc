# scripts/ingest.py
import sys, json, logging

from main import MANUAL_TASK, run_ingest


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    task = sys.argv[1] if len(sys.argv) > 1 else MANUAL_TASK
    outcome = run_ingest(task)
    print(json.dumps(outcome))
    return 0 if not outcome["skipped"] else 2


if __name__ == "__main__":
    sys.exit(main())
