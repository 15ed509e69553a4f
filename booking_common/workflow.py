"""Approval workflow: the only writer of a booking's decision fields.

    PENDING --decide(APPROVED)--> APPROVED
    PENDING --decide(REJECTED)--> REJECTED
    PENDING --cancel (requester)--> CANCELLED

APPROVED, REJECTED and CANCELLED are terminal.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from . import errors
from .config import get_settings
from .database import write_transaction
from .models import Booking, BookingStatus, RoleEnum, utcnow
from .notifications import BookingDecided, Deferrer, NotificationDispatcher
from .repositories import BookingRepository, UserRepository

logger = logging.getLogger(__name__)

DECISIONS = (BookingStatus.APPROVED, BookingStatus.REJECTED)


@dataclass
class DecisionResult:
    booking: Booking
    auto_rejected: List[Booking] = field(default_factory=list)


def decide(
    db: Session,
    booking_id: int,
    approver_id: int,
    decision: BookingStatus,
    feedback: Optional[str] = None,
    notifier: Optional[NotificationDispatcher] = None,
    defer: Optional[Deferrer] = None,
    auto_reject_conflicts: Optional[bool] = None,
) -> DecisionResult:
    """Resolve a PENDING booking.

    Approving re-runs the overlap check inside the same transaction: an
    overlapping APPROVED booking makes the approval fail with ``ConflictError``,
    and overlapping PENDING siblings are rejected alongside (unless
    ``auto_reject_conflicts`` is off, in which case they also block the
    approval).
    """

    if decision not in DECISIONS:
        raise errors.ValidationError("decision must be 'approved' or 'rejected'")
    if auto_reject_conflicts is None:
        auto_reject_conflicts = get_settings().auto_reject_conflicts

    with write_transaction(db):
        approver = UserRepository(db).get(approver_id)
        if approver is None or approver.role != RoleEnum.ADMIN or not approver.is_active:
            raise errors.Forbidden("Only approvers can decide bookings")

        repo = BookingRepository(db)
        booking = repo.get(booking_id, for_update=True)
        if booking is None:
            raise errors.NotFoundError(f"Booking {booking_id} not found")
        if booking.status != BookingStatus.PENDING:
            raise errors.InvalidStateError(f"Booking {booking_id} is already {booking.status.value}")

        siblings: List[Booking] = []
        if decision == BookingStatus.APPROVED:
            clashes = repo.find_overlapping(
                booking.booking_type,
                booking.resource_id,
                booking.booking_date,
                booking.start_time,
                booking.end_time,
                exclude_id=booking.id,
            )
            for clash in clashes:
                if clash.status == BookingStatus.APPROVED or not auto_reject_conflicts:
                    raise errors.ConflictError(
                        f"Booking {booking_id} overlaps booking {clash.id}", conflicting_booking_id=clash.id
                    )
            siblings = clashes

        decided_at = utcnow()
        repo.update_status(booking, decision, approver_id=approver.id, approved_at=decided_at, feedback=feedback)
        for sibling in siblings:
            repo.update_status(
                sibling,
                BookingStatus.REJECTED,
                approver_id=approver.id,
                approved_at=decided_at,
                feedback=f"Automatically rejected: the slot was given to booking #{booking.id}",
            )

    logger.info("Booking %s %s by user %s", booking_id, decision.value, approver_id)
    for sibling in siblings:
        logger.info("Booking %s auto-rejected in favour of booking %s", sibling.id, booking_id)

    if notifier is not None:
        notifier.notify(db, BookingDecided(booking, decision), defer=defer)
        for sibling in siblings:
            notifier.notify(db, BookingDecided(sibling, BookingStatus.REJECTED), defer=defer)
    return DecisionResult(booking=booking, auto_rejected=siblings)
