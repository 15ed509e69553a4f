"""Notification fan-out for booking lifecycle events.

The in-app record is persisted first and is the source of truth for unread
counts. E-mail and push run afterwards, independently, and their failures are
only logged. ``notify`` is always called after the triggering transaction has
committed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .channels import DeliveryChannel, EmailChannel, OutboundMessage, PushChannel, Recipient
from .database import write_transaction
from .errors import UpstreamError
from .models import Booking, BookingStatus, Notification, NotificationEvent, RoleEnum, User
from .repositories import NotificationRepository, UserRepository

logger = logging.getLogger(__name__)

# Schedules a callable to run after the response is sent (``BackgroundTasks.add_task``).
Deferrer = Callable[..., None]


@dataclass(frozen=True)
class BookingCreated:
    booking: Booking


@dataclass(frozen=True)
class BookingDecided:
    booking: Booking
    decision: BookingStatus


@dataclass(frozen=True)
class BookingCancelled:
    booking: Booking


@dataclass(frozen=True)
class BookingReminder:
    booking: Booking


BookingEvent = Union[BookingCreated, BookingDecided, BookingCancelled, BookingReminder]


def _window(booking: Booking) -> str:
    return (
        f"{booking.booking_date.isoformat()} "
        f"{booking.start_time.strftime('%H:%M')}-{booking.end_time.strftime('%H:%M')}"
    )


def _label(booking: Booking) -> str:
    kind = booking.booking_type.value.capitalize()
    return f"{kind} booking #{booking.id} ({booking.resource_name or booking.resource_id})"


def render(event: BookingEvent) -> tuple[NotificationEvent, str, str]:
    """Return the event tag, title and message text for an event."""

    booking = event.booking
    if isinstance(event, BookingCreated):
        return (
            NotificationEvent.BOOKING_CREATED,
            "New booking request",
            f"{_label(booking)} on {_window(booking)} requested by {booking.pic} "
            f"({booking.section}) awaits your decision.",
        )
    if isinstance(event, BookingDecided):
        verdict = "approved" if event.decision == BookingStatus.APPROVED else "rejected"
        message = f"Your {_label(booking)} on {_window(booking)} was {verdict}."
        if booking.feedback:
            message += f" Feedback: {booking.feedback}"
        return NotificationEvent.BOOKING_DECIDED, f"Booking {verdict}", message
    if isinstance(event, BookingCancelled):
        return (
            NotificationEvent.BOOKING_CANCELLED,
            "Booking request withdrawn",
            f"{_label(booking)} on {_window(booking)} was cancelled by the requester.",
        )
    return (
        NotificationEvent.BOOKING_REMINDER,
        "Upcoming booking",
        f"Reminder: your {_label(booking)} starts on {_window(booking)}.",
    )


class NotificationDispatcher:
    """Persists in-app notifications and fans out to the external channels."""

    def __init__(self, channels: Optional[Sequence[DeliveryChannel]] = None) -> None:
        self.channels: List[DeliveryChannel] = list(channels) if channels is not None else [PushChannel(), EmailChannel()]

    def recipients(self, db: Session, event: BookingEvent) -> List[User]:
        booking = event.booking
        if isinstance(event, (BookingDecided, BookingReminder)):
            return [booking.user]
        resource = booking.resource
        if resource is not None and resource.approver is not None and resource.approver.is_active:
            return [resource.approver]
        return UserRepository(db).list(role=RoleEnum.ADMIN, active_only=True)

    def notify(self, db: Session, event: BookingEvent, defer: Optional[Deferrer] = None) -> List[Notification]:
        """Record and deliver ``event``. Never raises; returns the persisted in-app records."""

        users = self.recipients(db, event)
        if not users:
            logger.warning("No recipients for %s on booking %s", type(event).__name__, event.booking.id)
            return []
        tag, title, text = render(event)
        data = {
            "booking_id": event.booking.id,
            "booking_type": event.booking.booking_type.value,
            "event": tag.value,
        }
        recipients = [Recipient(user.id, user.name, user.email, user.push_token) for user in users]

        try:
            with write_transaction(db):
                repo = NotificationRepository(db)
                created = [
                    repo.create(
                        Notification(
                            user_id=recipient.user_id,
                            booking_id=event.booking.id,
                            event=tag,
                            title=title,
                            message=text,
                            push_attempted=any(
                                c.name == "push" and c.applies_to(recipient) for c in self.channels
                            ),
                            email_attempted=any(
                                c.name == "email" and c.applies_to(recipient) for c in self.channels
                            ),
                        )
                    )
                    for recipient in recipients
                ]
        except SQLAlchemyError:
            logger.exception("Could not record notifications for booking %s", event.booking.id)
            return []

        message = OutboundMessage(title=title, body=text, data=data)
        for recipient in recipients:
            if defer is not None:
                defer(self.deliver, recipient, message)
            else:
                self.deliver(recipient, message)
        return created

    def deliver(self, recipient: Recipient, message: OutboundMessage) -> None:
        for channel in self.channels:
            if not channel.applies_to(recipient):
                continue
            try:
                channel.send(recipient, message)
            except UpstreamError as exc:
                logger.warning("%s delivery failed: %s", channel.name, exc.message)


@lru_cache
def default_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()
