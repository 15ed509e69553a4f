"""Pydantic schemas shared across the services."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import BookingStatus, BookingType, NotificationEvent, RoleEnum

PHONE_PATTERN = r"^[0-9]+$"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    user_id: int
    role: RoleEnum


class UserBase(BaseModel):
    name: str = Field(..., max_length=128)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=15, pattern=PHONE_PATTERN)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    role: RoleEnum = RoleEnum.REQUESTER


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=128)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=15, pattern=PHONE_PATTERN)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class PushTokenUpdate(BaseModel):
    push_token: Optional[str] = Field(None, max_length=255)


class UserAdminUpdate(BaseModel):
    role: Optional[RoleEnum] = None
    is_active: Optional[bool] = None


class UserRead(UserBase):
    id: int
    role: RoleEnum
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomBase(BaseModel):
    name: str = Field(..., max_length=100)
    room_type: str = Field("meeting", max_length=50)
    capacity: int = Field(..., ge=1)
    facilities: List[str] = Field(default_factory=list)
    approver_id: Optional[int] = None


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    room_type: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=1)
    facilities: Optional[List[str]] = None
    approver_id: Optional[int] = None
    is_active: Optional[bool] = None


class RoomRead(RoomBase):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TransportBase(BaseModel):
    vehicle_name: str = Field(..., max_length=100)
    driver_name: str = Field(..., max_length=100)
    capacity: int = Field(..., ge=1)
    approver_id: Optional[int] = None


class TransportCreate(TransportBase):
    pass


class TransportUpdate(BaseModel):
    vehicle_name: Optional[str] = Field(None, max_length=100)
    driver_name: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=1)
    approver_id: Optional[int] = None
    is_active: Optional[bool] = None


class TransportRead(TransportBase):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class BookingCreate(BaseModel):
    """Request body for ``POST /bookings/{type}``; the date travels as ``date``."""

    model_config = ConfigDict(populate_by_name=True)

    resource_id: int
    booking_date: date = Field(..., alias="date")
    start_time: time
    end_time: time
    pic: str = Field(..., min_length=1, max_length=128)
    section: str = Field(..., min_length=1, max_length=128)
    notes: Optional[str] = Field(None, max_length=2000)
    destination: Optional[str] = Field(None, max_length=255)


class BookingReschedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_date: date = Field(..., alias="date")
    start_time: time
    end_time: time


class DecisionRequest(BaseModel):
    decision: BookingStatus
    feedback: Optional[str] = Field(None, max_length=2000)


class BookingRead(BaseModel):
    id: int
    booking_type: BookingType
    resource_id: int
    resource_name: Optional[str] = None
    user_id: int
    booking_date: date
    start_time: time
    end_time: time
    pic: str
    section: str
    notes: Optional[str] = None
    destination: Optional[str] = None
    status: BookingStatus
    approver_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    feedback: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingFilter(BaseModel):
    """Filter shared by listing, aggregation and export."""

    status: Optional[BookingStatus] = None
    booking_type: Optional[BookingType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    resource_id: Optional[int] = None
    requester_id: Optional[int] = None


class Availability(BaseModel):
    resource_id: int
    booking_date: date
    start_time: time
    end_time: time
    available: bool
    conflicting_booking_id: Optional[int] = None


class NotificationRead(BaseModel):
    id: int
    booking_id: Optional[int] = None
    event: NotificationEvent
    title: str
    message: str
    in_app: bool
    push_attempted: bool
    email_attempted: bool
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    count: int


class ResourceUsage(BaseModel):
    booking_type: BookingType
    resource_id: int
    resource_name: Optional[str]
    booking_count: int


class BookingSummary(BaseModel):
    total: int
    counts_by_status: Dict[str, int]
    counts_by_resource_type: Dict[str, int]
    counts_by_section: Dict[str, int]
    top_resources: List[ResourceUsage]


class ExportRow(BaseModel):
    booking_id: int
    resource_type: BookingType
    resource_name: Optional[str]
    requester: str
    booking_date: date
    time_window: str
    status: BookingStatus
    approver: Optional[str] = None
    feedback: Optional[str] = None
