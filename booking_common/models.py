"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class RoleEnum(str, Enum):
    REQUESTER = "requester"
    ADMIN = "admin"


class BookingType(str, Enum):
    ROOM = "room"
    TRANSPORT = "transport"


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Statuses that occupy a resource's time window.
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


class NotificationEvent(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_DECIDED = "booking_decided"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_REMINDER = "booking_reminder"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128))
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(15), default=None)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum, values_callable=_values), default=RoleEnum.REQUESTER)
    push_token: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="user", foreign_keys="Booking.user_id")
    notifications: Mapped[List["Notification"]] = relationship(back_populates="user")


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    room_type: Mapped[str] = mapped_column(String(50), default="meeting")
    capacity: Mapped[int] = mapped_column(Integer, index=True)
    facilities: Mapped[list[str]] = mapped_column(JSON, default=list)
    approver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="room")
    approver: Mapped[Optional[User]] = relationship(foreign_keys=[approver_id])

    @property
    def display_name(self) -> str:
        return self.name


class Transport(Base):
    __tablename__ = "transports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    vehicle_name: Mapped[str] = mapped_column(String(100), unique=True)
    driver_name: Mapped[str] = mapped_column(String(100))
    capacity: Mapped[int] = mapped_column(Integer)
    approver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (CheckConstraint("capacity >= 1", name="ck_transports_capacity"),)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="transport")
    approver: Mapped[Optional[User]] = relationship(foreign_keys=[approver_id])

    @property
    def display_name(self) -> str:
        return self.vehicle_name


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    booking_type: Mapped[BookingType] = mapped_column(SqlEnum(BookingType, values_callable=_values), index=True)
    room_id: Mapped[Optional[int]] = mapped_column(ForeignKey("rooms.id"), default=None, index=True)
    transport_id: Mapped[Optional[int]] = mapped_column(ForeignKey("transports.id"), default=None, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    booking_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    pic: Mapped[str] = mapped_column(String(128))
    section: Mapped[str] = mapped_column(String(128))
    notes: Mapped[Optional[str]] = mapped_column(Text, default=None)
    destination: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    status: Mapped[BookingStatus] = mapped_column(
        SqlEnum(BookingStatus, values_callable=_values), default=BookingStatus.PENDING, index=True
    )
    approver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), default=None)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    feedback: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        CheckConstraint(
            "(room_id IS NULL) <> (transport_id IS NULL)",
            name="ck_bookings_single_resource",
        ),
        Index("ix_bookings_room_slot", "room_id", "booking_date", "status"),
        Index("ix_bookings_transport_slot", "transport_id", "booking_date", "status"),
    )

    user: Mapped[User] = relationship(back_populates="bookings", foreign_keys=[user_id])
    approver: Mapped[Optional[User]] = relationship(foreign_keys=[approver_id])
    room: Mapped[Optional[Room]] = relationship(back_populates="bookings")
    transport: Mapped[Optional[Transport]] = relationship(back_populates="bookings")

    @property
    def resource_id(self) -> int:
        return self.room_id if self.booking_type == BookingType.ROOM else self.transport_id

    @property
    def resource(self) -> Room | Transport | None:
        return self.room if self.booking_type == BookingType.ROOM else self.transport

    @property
    def resource_name(self) -> Optional[str]:
        resource = self.resource
        return resource.display_name if resource is not None else None

    def overlaps(self, start: time, end: time) -> bool:
        return self.start_time < end and start < self.end_time


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    booking_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bookings.id"), default=None, index=True)
    event: Mapped[NotificationEvent] = mapped_column(SqlEnum(NotificationEvent, values_callable=_values))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    in_app: Mapped[bool] = mapped_column(Boolean, default=True)
    push_attempted: Mapped[bool] = mapped_column(Boolean, default=False)
    email_attempted: Mapped[bool] = mapped_column(Boolean, default=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    user: Mapped[User] = relationship(back_populates="notifications")
    booking: Mapped[Optional[Booking]] = relationship()
