"""
Re-dispatch notification emails that were never delivered.

What it does:
- Finds notification_outbox rows that are pending (never enqueued, e.g. broker
  outage) and, unless --pending-only, failed rows still under
  NOTIFICATION_EMAIL_MAX_ATTEMPTS.
- Hands each to the Celery worker (or sends inline when no broker is configured).

Usage:
  python scripts/redrive_notifications.py --limit 200
  python scripts/redrive_notifications.py --pending-only --dry-run
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys


# Allow `import applytrack.*` from backend/ without installing the package
REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


from applytrack.core.config import settings  # noqa: E402
from applytrack.core.database import SessionLocal  # noqa: E402
from applytrack.models.notification_outbox import NotificationOutbox  # noqa: E402
from applytrack.tasks.notifications import redrive_outbox  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Re-dispatch undelivered notification emails.")
    parser.add_argument("--limit", type=int, default=100, help="Maximum rows to dispatch.")
    parser.add_argument("--pending-only", action="store_true", help="Skip rows that already failed.")
    parser.add_argument("--dry-run", action="store_true", help="Only count eligible rows.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")

    statuses = ["pending"] if args.pending_only else ["pending", "failed"]

    with SessionLocal() as db:
        if args.dry_run:
            count = (
                db.query(NotificationOutbox)
                .filter(NotificationOutbox.status.in_(statuses))
                .filter(NotificationOutbox.attempts < settings.NOTIFICATION_EMAIL_MAX_ATTEMPTS)
                .count()
            )
            print(f"Eligible rows ({', '.join(statuses)}): {count}")
            return 0

        ids = redrive_outbox(db, limit=args.limit, include_failed=not args.pending_only)

    print(f"Dispatched {len(ids)} outbox row(s).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
