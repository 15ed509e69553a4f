#!/usr/bin/env python3
"""Periodic job notifying requesters of APPROVED bookings that start soon."""
import argparse
import logging
import time

from booking_common.config import get_settings
from booking_common.database import SessionLocal
from booking_common.logging_middleware import configure_logging
from booking_common.notifications import default_dispatcher
from booking_common.reminders import send_due_reminders

logger = logging.getLogger("scripts.send_reminders")


def run_once(lead_minutes: int) -> int:
    db = SessionLocal()
    try:
        return send_due_reminders(db, default_dispatcher(), lead_minutes=lead_minutes)
    finally:
        db.close()


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    parser.add_argument("--lead-minutes", type=int, default=settings.reminder_lead_minutes)
    args = parser.parse_args()

    configure_logging()
    if args.once:
        run_once(args.lead_minutes)
        return

    logger.info("Reminder job started (lead=%s min, every %ss)", args.lead_minutes, settings.reminder_interval_seconds)
    while True:
        try:
            run_once(args.lead_minutes)
        except Exception:
            logger.exception("Reminder pass failed")
        time.sleep(settings.reminder_interval_seconds)


if __name__ == "__main__":
    main()
