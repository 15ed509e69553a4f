from datetime import date, time
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from booking_common import ledger, workflow
from booking_common.database import get_db
from booking_common.dependencies import get_current_active_user, get_dispatcher, require_admin
from booking_common.errors import Forbidden, NotFoundError
from booking_common.models import Booking, BookingStatus, BookingType, RoleEnum, User
from booking_common.notifications import NotificationDispatcher
from booking_common.rate_limit import limiter
from booking_common.schemas import (
    Availability,
    BookingCreate,
    BookingFilter,
    BookingRead,
    BookingReschedule,
    DecisionRequest,
)
from booking_common.service import build_app


def create_app():
    return build_app("Bookings Service", "bookings")


app = create_app()


@app.post("/bookings/{booking_type}", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    booking_type: BookingType,
    booking_in: BookingCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Booking:
    return ledger.create_booking(
        db,
        booking_type,
        resource_id=booking_in.resource_id,
        requester_id=current_user.id,
        booking_date=booking_in.booking_date,
        start_time=booking_in.start_time,
        end_time=booking_in.end_time,
        pic=booking_in.pic,
        section=booking_in.section,
        notes=booking_in.notes,
        destination=booking_in.destination,
        notifier=dispatcher,
        defer=background_tasks.add_task,
    )


@app.get("/bookings/{booking_type}", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_bookings(
    request: Request,
    booking_type: BookingType,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    resource_id: Optional[int] = None,
    requester_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> List[Booking]:
    # Requesters only ever see their own bookings.
    if current_user.role != RoleEnum.ADMIN:
        if requester_id is not None and requester_id != current_user.id:
            raise Forbidden("Requesters can only list their own bookings")
        requester_id = current_user.id
    filters = BookingFilter(
        status=status_filter,
        booking_type=booking_type,
        date_from=date_from,
        date_to=date_to,
        resource_id=resource_id,
        requester_id=requester_id,
    )
    return ledger.list_bookings(db, filters)


@app.get("/bookings/{booking_type}/availability", response_model=Availability)
@limiter.limit("40/minute")
def check_availability(
    request: Request,
    booking_type: BookingType,
    resource_id: int,
    booking_date: date = Query(..., alias="date"),
    start_time: time = Query(...),
    end_time: time = Query(...),
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Availability:
    clash = ledger.check_availability(db, booking_type, resource_id, booking_date, start_time, end_time)
    return Availability(
        resource_id=resource_id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        available=clash is None,
        conflicting_booking_id=clash.id if clash else None,
    )


@app.get("/bookings/{booking_type}/{booking_id}", response_model=BookingRead)
@limiter.limit("60/minute")
def get_booking(
    request: Request,
    booking_type: BookingType,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Booking:
    booking = ledger.get_booking(db, booking_id)
    if booking.booking_type != booking_type:
        raise NotFoundError(f"Booking {booking_id} not found")
    if current_user.role != RoleEnum.ADMIN and booking.user_id != current_user.id:
        raise Forbidden("Access denied")
    return booking


@app.patch("/bookings/{booking_id}/decision", response_model=BookingRead)
@limiter.limit("30/minute")
def decide_booking(
    request: Request,
    booking_id: int,
    decision_in: DecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Booking:
    result = workflow.decide(
        db,
        booking_id,
        approver_id=current_user.id,
        decision=decision_in.decision,
        feedback=decision_in.feedback,
        notifier=dispatcher,
        defer=background_tasks.add_task,
    )
    return result.booking


@app.patch("/bookings/{booking_id}/cancel", response_model=BookingRead)
@limiter.limit("20/minute")
def cancel_booking(
    request: Request,
    booking_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Booking:
    return ledger.cancel_booking(
        db, booking_id, actor_id=current_user.id, notifier=dispatcher, defer=background_tasks.add_task
    )


@app.patch("/bookings/{booking_id}/reschedule", response_model=BookingRead)
@limiter.limit("20/minute")
def reschedule_booking(
    request: Request,
    booking_id: int,
    reschedule_in: BookingReschedule,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Booking:
    return ledger.reschedule_booking(
        db,
        booking_id,
        actor_id=current_user.id,
        booking_date=reschedule_in.booking_date,
        start_time=reschedule_in.start_time,
        end_time=reschedule_in.end_time,
    )
