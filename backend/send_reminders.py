"""Send eve-of-appointment reminder emails once.

Usage:
    python -m backend.send_reminders

Meant to run from cron at 18:00 server time (``0 18 * * *``).
"""

import logging

from backend.core import config
from backend.database import SessionLocal
from backend.services.appointment_store import utc_now
from backend.services.notifications import get_notification_dispatcher
from backend.services.reminders import send_day_before_reminders


def main() -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    db = SessionLocal()
    try:
        send_day_before_reminders(db, get_notification_dispatcher(), utc_now())
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
