"""Unit tests for the approval workflow."""
from datetime import date, time

import pytest

from booking_common import errors, workflow
from booking_common.models import Booking, BookingStatus, BookingType, Notification, NotificationEvent

DAY = date(2025, 2, 1)


def insert_booking(db, seeded, start, end, user_id=None, status=BookingStatus.PENDING) -> Booking:
    """Insert a row directly, bypassing the ledger's overlap check."""
    booking = Booking(
        booking_type=BookingType.ROOM,
        room_id=seeded.room_id,
        user_id=user_id or seeded.alice_id,
        booking_date=DAY,
        start_time=start,
        end_time=end,
        pic="Alice",
        section="Finance",
        status=status,
    )
    db.add(booking)
    db.commit()
    return booking


def test_approve_sets_decision_fields(db_session, seeded):
    booking = insert_booking(db_session, seeded, time(9), time(10))

    result = workflow.decide(db_session, booking.id, seeded.admin_id, BookingStatus.APPROVED, feedback="ok")

    assert result.booking.status == BookingStatus.APPROVED
    assert result.booking.approver_id == seeded.admin_id
    assert result.booking.approved_at is not None
    assert result.booking.feedback == "ok"
    assert result.auto_rejected == []


def test_requester_cannot_decide(db_session, seeded):
    booking = insert_booking(db_session, seeded, time(9), time(10))

    with pytest.raises(errors.Forbidden):
        workflow.decide(db_session, booking.id, seeded.bob_id, BookingStatus.APPROVED)

    db_session.expire_all()
    assert db_session.get(Booking, booking.id).status == BookingStatus.PENDING


def test_second_decision_keeps_the_first(db_session, seeded):
    booking = insert_booking(db_session, seeded, time(9), time(10))
    workflow.decide(db_session, booking.id, seeded.admin_id, BookingStatus.REJECTED, feedback="Closed for cleaning")

    with pytest.raises(errors.InvalidStateError):
        workflow.decide(db_session, booking.id, seeded.admin_id, BookingStatus.APPROVED, feedback="sorry")

    db_session.expire_all()
    stored = db_session.get(Booking, booking.id)
    assert stored.status == BookingStatus.REJECTED
    assert stored.feedback == "Closed for cleaning"


def test_decision_must_be_approve_or_reject(db_session, seeded):
    booking = insert_booking(db_session, seeded, time(9), time(10))

    with pytest.raises(errors.ValidationError):
        workflow.decide(db_session, booking.id, seeded.admin_id, BookingStatus.CANCELLED)


def test_approval_rejects_overlapping_pending_siblings(db_session, seeded, dispatcher):
    chosen = insert_booking(db_session, seeded, time(9), time(10))
    sibling = insert_booking(db_session, seeded, time(9, 30), time(10, 30), user_id=seeded.bob_id)
    untouched = insert_booking(db_session, seeded, time(10), time(11), user_id=seeded.bob_id)

    result = workflow.decide(
        db_session, chosen.id, seeded.admin_id, BookingStatus.APPROVED, notifier=dispatcher, auto_reject_conflicts=True
    )

    assert [b.id for b in result.auto_rejected] == [sibling.id]
    db_session.expire_all()
    assert db_session.get(Booking, sibling.id).status == BookingStatus.REJECTED
    assert f"#{chosen.id}" in db_session.get(Booking, sibling.id).feedback
    assert db_session.get(Booking, untouched.id).status == BookingStatus.PENDING

    decided_for = {
        n.user_id for n in db_session.query(Notification).filter_by(event=NotificationEvent.BOOKING_DECIDED)
    }
    assert decided_for == {seeded.alice_id, seeded.bob_id}


def test_approval_blocked_by_pending_sibling_when_auto_reject_is_off(db_session, seeded):
    chosen = insert_booking(db_session, seeded, time(9), time(10))
    sibling = insert_booking(db_session, seeded, time(9, 30), time(10, 30), user_id=seeded.bob_id)

    with pytest.raises(errors.ConflictError) as exc_info:
        workflow.decide(db_session, chosen.id, seeded.admin_id, BookingStatus.APPROVED, auto_reject_conflicts=False)

    assert exc_info.value.conflicting_booking_id == sibling.id


def test_approval_conflicting_with_approved_booking_fails(db_session, seeded):
    insert_booking(db_session, seeded, time(9), time(10), status=BookingStatus.APPROVED)
    late = insert_booking(db_session, seeded, time(9, 45), time(10, 15), user_id=seeded.bob_id)

    with pytest.raises(errors.ConflictError):
        workflow.decide(db_session, late.id, seeded.admin_id, BookingStatus.APPROVED)

    db_session.expire_all()
    assert db_session.get(Booking, late.id).status == BookingStatus.PENDING

    # Rejecting it is still allowed.
    rejected = workflow.decide(db_session, late.id, seeded.admin_id, BookingStatus.REJECTED)
    assert rejected.booking.status == BookingStatus.REJECTED
