"""Booking ledger: create, list, reschedule and cancel bookings.

Every mutation is a single read-then-write unit inside ``write_transaction``:
the overlap check and the insert/update either commit together or not at all.
Notifications are dispatched only after the commit.
"""
from __future__ import annotations

import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from . import errors
from .database import write_transaction
from .models import ACTIVE_STATUSES, Booking, BookingStatus, BookingType
from .notifications import BookingCancelled, BookingCreated, Deferrer, NotificationDispatcher
from .repositories import BookingRepository, ResourceRepository, UserRepository
from .schemas import BookingFilter

logger = logging.getLogger(__name__)


def validate_window(start: time, end: time) -> None:
    if start >= end:
        raise errors.ValidationError("start_time must be before end_time")


def _lock_resource(db: Session, booking_type: BookingType, resource_id: int):
    resource = ResourceRepository.for_type(db, booking_type).get(resource_id, for_update=True)
    if resource is None or not resource.is_active:
        raise errors.NotFoundError(f"{booking_type.value.capitalize()} {resource_id} not found")
    return resource


def ensure_available(
    db: Session,
    booking_type: BookingType,
    resource_id: int,
    booking_date: date,
    start: time,
    end: time,
    exclude_id: Optional[int] = None,
) -> None:
    clashes = BookingRepository(db).find_overlapping(
        booking_type, resource_id, booking_date, start, end, ACTIVE_STATUSES, exclude_id=exclude_id
    )
    if clashes:
        clash = clashes[0]
        raise errors.ConflictError(
            f"{booking_type.value.capitalize()} {resource_id} is already booked on {booking_date.isoformat()} "
            f"from {clash.start_time.strftime('%H:%M')} to {clash.end_time.strftime('%H:%M')}",
            conflicting_booking_id=clash.id,
        )


def check_availability(
    db: Session, booking_type: BookingType, resource_id: int, booking_date: date, start: time, end: time
) -> Optional[Booking]:
    """Return the first booking occupying the window, or ``None`` when it is free."""

    validate_window(start, end)
    if ResourceRepository.for_type(db, booking_type).get(resource_id) is None:
        raise errors.NotFoundError(f"{booking_type.value.capitalize()} {resource_id} not found")
    clashes = BookingRepository(db).find_overlapping(booking_type, resource_id, booking_date, start, end)
    return clashes[0] if clashes else None


def create_booking(
    db: Session,
    booking_type: BookingType,
    resource_id: int,
    requester_id: int,
    booking_date: date,
    start_time: time,
    end_time: time,
    pic: str,
    section: str,
    notes: Optional[str] = None,
    destination: Optional[str] = None,
    notifier: Optional[NotificationDispatcher] = None,
    defer: Optional[Deferrer] = None,
) -> Booking:
    validate_window(start_time, end_time)
    if not pic.strip() or not section.strip():
        raise errors.ValidationError("pic and section are required")

    with write_transaction(db):
        requester = UserRepository(db).get(requester_id)
        if requester is None or not requester.is_active:
            raise errors.NotFoundError(f"User {requester_id} not found")
        _lock_resource(db, booking_type, resource_id)
        ensure_available(db, booking_type, resource_id, booking_date, start_time, end_time)

        booking = BookingRepository(db).create(
            Booking(
                booking_type=booking_type,
                room_id=resource_id if booking_type == BookingType.ROOM else None,
                transport_id=resource_id if booking_type == BookingType.TRANSPORT else None,
                user_id=requester_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                pic=pic.strip(),
                section=section.strip(),
                notes=notes,
                destination=destination,
                status=BookingStatus.PENDING,
            )
        )

    logger.info(
        "Booking %s created: %s %s on %s %s-%s by user %s",
        booking.id,
        booking_type.value,
        resource_id,
        booking_date,
        start_time,
        end_time,
        requester_id,
    )
    if notifier is not None:
        notifier.notify(db, BookingCreated(booking), defer=defer)
    return booking


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = BookingRepository(db).get(booking_id)
    if booking is None:
        raise errors.NotFoundError(f"Booking {booking_id} not found")
    return booking


def list_bookings(db: Session, filters: BookingFilter) -> List[Booking]:
    """Bookings matching ``filters`` ordered by date, then start time."""

    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise errors.ValidationError("date_from must not be after date_to")
    if filters.resource_id is not None and filters.booking_type is None:
        raise errors.ValidationError("resource_id requires a booking type")
    return BookingRepository(db).list(filters)


def cancel_booking(
    db: Session,
    booking_id: int,
    actor_id: int,
    notifier: Optional[NotificationDispatcher] = None,
    defer: Optional[Deferrer] = None,
) -> Booking:
    with write_transaction(db):
        repo = BookingRepository(db)
        booking = repo.get(booking_id, for_update=True)
        if booking is None:
            raise errors.NotFoundError(f"Booking {booking_id} not found")
        if booking.user_id != actor_id:
            raise errors.Forbidden("Only the requester can cancel this booking")
        if booking.status != BookingStatus.PENDING:
            raise errors.InvalidStateError(f"Cannot cancel a booking that is {booking.status.value}")
        repo.update_status(booking, BookingStatus.CANCELLED)

    logger.info("Booking %s cancelled by user %s", booking_id, actor_id)
    if notifier is not None:
        notifier.notify(db, BookingCancelled(booking), defer=defer)
    return booking


def reschedule_booking(
    db: Session,
    booking_id: int,
    actor_id: int,
    booking_date: date,
    start_time: time,
    end_time: time,
) -> Booking:
    """Move a PENDING booking to a new window; the overlap check ignores the booking itself."""

    validate_window(start_time, end_time)
    with write_transaction(db):
        repo = BookingRepository(db)
        booking = repo.get(booking_id, for_update=True)
        if booking is None:
            raise errors.NotFoundError(f"Booking {booking_id} not found")
        if booking.user_id != actor_id:
            raise errors.Forbidden("Only the requester can reschedule this booking")
        if booking.status != BookingStatus.PENDING:
            raise errors.InvalidStateError(f"Cannot reschedule a booking that is {booking.status.value}")
        _lock_resource(db, booking.booking_type, booking.resource_id)
        ensure_available(
            db, booking.booking_type, booking.resource_id, booking_date, start_time, end_time, exclude_id=booking.id
        )
        booking.booking_date = booking_date
        booking.start_time = start_time
        booking.end_time = end_time
        db.flush()

    logger.info("Booking %s rescheduled to %s %s-%s", booking_id, booking_date, start_time, end_time)
    return booking
