"""Repositories isolating SQLAlchemy queries from the booking rules.

Each repository wraps one entity and exposes the capability set the ledger and
workflow need (``get``, ``list``, ``create``, ``update_status`` and a few
entity-specific lookups). Repositories flush but never commit; the caller owns
the transaction.
"""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from .models import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    BookingType,
    Notification,
    NotificationEvent,
    RoleEnum,
    Room,
    Transport,
    User,
)
from .schemas import BookingFilter

ResourceT = TypeVar("ResourceT", Room, Transport)

RESOURCE_MODELS: Dict[BookingType, Type[Room] | Type[Transport]] = {
    BookingType.ROOM: Room,
    BookingType.TRANSPORT: Transport,
}


class UserRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()

    def list(self, role: Optional[RoleEnum] = None, active_only: bool = False) -> List[User]:
        query = select(User).order_by(User.id)
        if role is not None:
            query = query.where(User.role == role)
        if active_only:
            query = query.where(User.is_active.is_(True))
        return list(self.session.execute(query).scalars())

    def create(self, user: User) -> User:
        self.session.add(user)
        self.session.flush()
        return user

    def admin_exists(self) -> bool:
        query = select(User.id).where(User.role == RoleEnum.ADMIN).limit(1)
        return self.session.execute(query).first() is not None


class ResourceRepository(Generic[ResourceT]):
    """Catalog access for one resource kind (rooms or transports)."""

    def __init__(self, session: Session, model: Type[ResourceT]) -> None:
        self.session = session
        self.model = model

    @classmethod
    def for_type(cls, session: Session, booking_type: BookingType) -> "ResourceRepository":
        return cls(session, RESOURCE_MODELS[booking_type])

    def get(self, resource_id: int, for_update: bool = False) -> Optional[ResourceT]:
        query = select(self.model).where(self.model.id == resource_id)
        if for_update:
            query = query.with_for_update()
        return self.session.execute(query).scalar_one_or_none()

    def get_by_name(self, name: str) -> Optional[ResourceT]:
        column = self.model.name if self.model is Room else self.model.vehicle_name
        return self.session.execute(select(self.model).where(column == name)).scalar_one_or_none()

    def list(self, min_capacity: Optional[int] = None, include_inactive: bool = False) -> List[ResourceT]:
        query = select(self.model).order_by(self.model.id)
        if not include_inactive:
            query = query.where(self.model.is_active.is_(True))
        if min_capacity:
            query = query.where(self.model.capacity >= min_capacity)
        return list(self.session.execute(query).scalars())

    def create(self, resource: ResourceT) -> ResourceT:
        self.session.add(resource)
        self.session.flush()
        return resource


class BookingRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        query = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        return self.session.execute(query).scalar_one_or_none()

    def list(self, filters: BookingFilter) -> List[Booking]:
        query = (
            select(Booking)
            .options(
                joinedload(Booking.room),
                joinedload(Booking.transport),
                joinedload(Booking.user),
                joinedload(Booking.approver),
            )
            .order_by(Booking.booking_date.asc(), Booking.start_time.asc(), Booking.id.asc())
        )
        for condition in self._conditions(filters):
            query = query.where(condition)
        return list(self.session.execute(query).scalars())

    def create(self, booking: Booking) -> Booking:
        self.session.add(booking)
        self.session.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        status: BookingStatus,
        approver_id: Optional[int] = None,
        approved_at: Optional[datetime] = None,
        feedback: Optional[str] = None,
    ) -> Booking:
        booking.status = status
        if approver_id is not None:
            booking.approver_id = approver_id
            booking.approved_at = approved_at
            booking.feedback = feedback
        self.session.flush()
        return booking

    def find_overlapping(
        self,
        booking_type: BookingType,
        resource_id: int,
        booking_date: date,
        start: time,
        end: time,
        statuses: Sequence[BookingStatus] = ACTIVE_STATUSES,
        exclude_id: Optional[int] = None,
    ) -> List[Booking]:
        """Bookings on the same resource/date whose window intersects ``[start, end)``."""

        resource_column = Booking.room_id if booking_type == BookingType.ROOM else Booking.transport_id
        query = (
            select(Booking)
            .where(
                Booking.booking_type == booking_type,
                resource_column == resource_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(list(statuses)),
                Booking.start_time < end,
                Booking.end_time > start,
            )
            .order_by(Booking.start_time, Booking.id)
        )
        if exclude_id is not None:
            query = query.where(Booking.id != exclude_id)
        return list(self.session.execute(query).scalars())

    def has_active(self, booking_type: BookingType, resource_id: int) -> bool:
        resource_column = Booking.room_id if booking_type == BookingType.ROOM else Booking.transport_id
        query = (
            select(Booking.id)
            .where(resource_column == resource_id, Booking.status.in_(list(ACTIVE_STATUSES)))
            .limit(1)
        )
        return self.session.execute(query).first() is not None

    def count_by(self, column, filters: BookingFilter) -> Dict[str, int]:
        query = select(column, func.count(Booking.id)).group_by(column)
        for condition in self._conditions(filters):
            query = query.where(condition)
        counts: Dict[str, int] = {}
        for key, count in self.session.execute(query):
            label = key.value if hasattr(key, "value") else str(key)
            counts[label] = count
        return counts

    def approved_between(self, start: datetime, end: datetime) -> List[Booking]:
        """APPROVED bookings whose start falls in ``[start, end)``."""

        query = (
            select(Booking)
            .where(
                Booking.status == BookingStatus.APPROVED,
                Booking.booking_date >= start.date(),
                Booking.booking_date <= end.date(),
            )
            .order_by(Booking.booking_date, Booking.start_time)
        )
        return [
            booking
            for booking in self.session.execute(query).scalars()
            if start <= datetime.combine(booking.booking_date, booking.start_time) < end
        ]

    @staticmethod
    def _conditions(filters: BookingFilter) -> list:
        conditions = []
        if filters.status is not None:
            conditions.append(Booking.status == filters.status)
        if filters.booking_type is not None:
            conditions.append(Booking.booking_type == filters.booking_type)
        if filters.date_from is not None:
            conditions.append(Booking.booking_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(Booking.booking_date <= filters.date_to)
        if filters.resource_id is not None:
            if filters.booking_type == BookingType.ROOM:
                conditions.append(Booking.room_id == filters.resource_id)
            else:
                conditions.append(Booking.transport_id == filters.resource_id)
        if filters.requester_id is not None:
            conditions.append(Booking.user_id == filters.requester_id)
        return conditions


class NotificationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: int) -> Optional[Notification]:
        return self.session.get(Notification, notification_id)

    def list(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        return list(self.session.execute(query).scalars())

    def create(self, notification: Notification) -> Notification:
        self.session.add(notification)
        self.session.flush()
        return notification

    def unread_count(self, user_id: int) -> int:
        query = select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
        return self.session.execute(query).scalar_one()

    def mark_all_read(self, user_id: int) -> int:
        result = self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount

    def exists_for_booking(self, booking_id: int, event: NotificationEvent) -> bool:
        query = (
            select(Notification.id)
            .where(Notification.booking_id == booking_id, Notification.event == event)
            .limit(1)
        )
        return self.session.execute(query).first() is not None
