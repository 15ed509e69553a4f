"""Reminders for approved bookings that are about to start."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from dateutil import tz
from sqlalchemy.orm import Session

from .config import get_settings
from .models import Booking, NotificationEvent
from .notifications import BookingReminder, NotificationDispatcher
from .repositories import BookingRepository, NotificationRepository

logger = logging.getLogger(__name__)


def local_now(zone_name: Optional[str] = None) -> datetime:
    """Naive wall-clock time in the zone bookings are entered in.

    Booking dates and times carry no offset, so the reminder clock has to be
    read in the same zone before the two are compared.
    """

    if zone_name is None:
        zone_name = get_settings().booking_timezone
    zone = tz.gettz(zone_name) if zone_name else tz.tzlocal()
    if zone is None:
        raise ValueError(f"Unknown time zone: {zone_name}")
    return datetime.now(zone).replace(tzinfo=None)


def due_bookings(db: Session, now: datetime, lead: timedelta) -> List[Booking]:
    """APPROVED bookings starting within ``lead`` of ``now`` that were not reminded yet."""

    notifications = NotificationRepository(db)
    return [
        booking
        for booking in BookingRepository(db).approved_between(now, now + lead)
        if not notifications.exists_for_booking(booking.id, NotificationEvent.BOOKING_REMINDER)
    ]


def send_due_reminders(
    db: Session,
    notifier: NotificationDispatcher,
    now: Optional[datetime] = None,
    lead_minutes: Optional[int] = None,
) -> int:
    """Notify requesters of upcoming bookings. Returns the number of bookings reminded."""

    if now is None:
        now = local_now()
    if lead_minutes is None:
        lead_minutes = get_settings().reminder_lead_minutes
    sent = 0
    for booking in due_bookings(db, now, timedelta(minutes=lead_minutes)):
        if notifier.notify(db, BookingReminder(booking)):
            sent += 1
    if sent:
        logger.info("Sent %s booking reminder(s)", sent)
    return sent
