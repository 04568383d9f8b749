"""
Hard-purge notifications that have been soft-deleted for longer than the
retention window. Intended for a daily cron job.

    python -m scripts.purge_notifications            # uses NOTIFICATION_RETENTION_DAYS
    python -m scripts.purge_notifications --days 7
"""
import argparse

from app.core.logging import setup_logging
from app.database import SessionLocal, init_db
from app.services.compliance import ComplianceService


def purge(days=None):
    db = SessionLocal()
    try:
        result = ComplianceService.enforce_notification_retention(db, retention_days=days)
        print(f"Purged {result['notifications_purged']} notification(s); cutoff {result['cutoff_date']}")
        return result
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Purge expired soft-deleted notifications")
    parser.add_argument("--days", type=int, default=None, help="Retention window in days (0 disables)")
    args = parser.parse_args()
    setup_logging()
    init_db()
    purge(args.days)
