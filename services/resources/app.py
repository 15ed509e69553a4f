from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from booking_common.cache import SimpleTTLCache, listing_key
from booking_common.config import get_settings
from booking_common.database import get_db, write_transaction
from booking_common.dependencies import get_current_active_user, require_admin
from booking_common.errors import ConflictError, NotFoundError
from booking_common.models import BookingType, RoleEnum, Room, Transport, User
from booking_common.rate_limit import limiter
from booking_common.repositories import RESOURCE_MODELS, BookingRepository, ResourceRepository, UserRepository
from booking_common.schemas import (
    RoomCreate,
    RoomRead,
    RoomUpdate,
    TransportCreate,
    TransportRead,
    TransportUpdate,
)
from booking_common.service import build_app

settings = get_settings()
listing_cache: SimpleTTLCache[list] = SimpleTTLCache(ttl=settings.resource_cache_ttl)
NAME_FIELDS = {BookingType.ROOM: "name", BookingType.TRANSPORT: "vehicle_name"}


def create_app():
    return build_app("Resources Service", "resources")


app = create_app()


def _invalidate(kind: BookingType) -> None:
    listing_cache.invalidate_prefix(listing_key(kind.value))


def _check_approver(db: Session, approver_id: Optional[int]) -> None:
    if approver_id is None:
        return
    approver = UserRepository(db).get(approver_id)
    if approver is None or approver.role != RoleEnum.ADMIN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="approver_id must reference an admin")


def _get_or_404(db: Session, kind: BookingType, resource_id: int):
    resource = ResourceRepository.for_type(db, kind).get(resource_id)
    if not resource:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind.value.capitalize()} not found")
    return resource


def _check_unique_name(db: Session, kind: BookingType, name: Optional[str], resource_id: Optional[int] = None) -> None:
    if name is None:
        return
    existing = ResourceRepository.for_type(db, kind).get_by_name(name)
    if existing is not None and existing.id != resource_id:
        raise ConflictError(f"{kind.value.capitalize()} '{name}' already exists")


def _check_unused(db: Session, kind: BookingType, resource_id: int) -> None:
    if BookingRepository(db).has_active(kind, resource_id):
        raise ConflictError(f"{kind.value.capitalize()} {resource_id} still has pending or approved bookings")


def _create(db: Session, kind: BookingType, data: dict):
    with write_transaction(db):
        _check_approver(db, data.get("approver_id"))
        _check_unique_name(db, kind, data[NAME_FIELDS[kind]])
        resource = ResourceRepository.for_type(db, kind).create(RESOURCE_MODELS[kind](**data))
    db.refresh(resource)
    _invalidate(kind)
    return resource


def _update(db: Session, kind: BookingType, resource_id: int, data: dict):
    with write_transaction(db):
        resource = ResourceRepository.for_type(db, kind).get(resource_id, for_update=True)
        if not resource:
            raise NotFoundError(f"{kind.value.capitalize()} not found")
        _check_approver(db, data.get("approver_id"))
        _check_unique_name(db, kind, data.get(NAME_FIELDS[kind]), resource_id)
        if data.get("is_active") is False and resource.is_active:
            _check_unused(db, kind, resource_id)
        for key, value in data.items():
            setattr(resource, key, value)
    db.refresh(resource)
    _invalidate(kind)
    return resource


def _deactivate(db: Session, kind: BookingType, resource_id: int) -> None:
    with write_transaction(db):
        resource = ResourceRepository.for_type(db, kind).get(resource_id, for_update=True)
        if not resource:
            raise NotFoundError(f"{kind.value.capitalize()} not found")
        _check_unused(db, kind, resource_id)
        resource.is_active = False
    _invalidate(kind)


@app.get("/resources/rooms", response_model=List[RoomRead])
@limiter.limit("60/minute")
def list_rooms(
    request: Request,
    capacity: Optional[int] = None,
    include_inactive: bool = False,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> List[Room]:
    cache_key = listing_key(BookingType.ROOM.value, capacity, include_inactive)
    cached = listing_cache.get(cache_key)
    if cached is not None:
        return cached
    rooms = ResourceRepository(db, Room).list(min_capacity=capacity, include_inactive=include_inactive)
    payload = [RoomRead.model_validate(room) for room in rooms]
    listing_cache.set(cache_key, payload)
    return payload


@app.post("/resources/rooms", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_room(
    request: Request,
    room_in: RoomCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Room:
    return _create(db, BookingType.ROOM, room_in.model_dump())


@app.get("/resources/rooms/{room_id}", response_model=RoomRead)
@limiter.limit("60/minute")
def get_room(
    request: Request,
    room_id: int,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Room:
    return _get_or_404(db, BookingType.ROOM, room_id)


@app.put("/resources/rooms/{room_id}", response_model=RoomRead)
@limiter.limit("15/minute")
def update_room(
    request: Request,
    room_id: int,
    room_update: RoomUpdate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Room:
    return _update(db, BookingType.ROOM, room_id, room_update.model_dump(exclude_unset=True))


@app.delete("/resources/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_room(
    request: Request,
    room_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    _deactivate(db, BookingType.ROOM, room_id)


@app.get("/resources/transports", response_model=List[TransportRead])
@limiter.limit("60/minute")
def list_transports(
    request: Request,
    capacity: Optional[int] = None,
    include_inactive: bool = False,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> List[Transport]:
    cache_key = listing_key(BookingType.TRANSPORT.value, capacity, include_inactive)
    cached = listing_cache.get(cache_key)
    if cached is not None:
        return cached
    transports = ResourceRepository(db, Transport).list(min_capacity=capacity, include_inactive=include_inactive)
    payload = [TransportRead.model_validate(transport) for transport in transports]
    listing_cache.set(cache_key, payload)
    return payload


@app.post("/resources/transports", response_model=TransportRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_transport(
    request: Request,
    transport_in: TransportCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Transport:
    return _create(db, BookingType.TRANSPORT, transport_in.model_dump())


@app.get("/resources/transports/{transport_id}", response_model=TransportRead)
@limiter.limit("60/minute")
def get_transport(
    request: Request,
    transport_id: int,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Transport:
    return _get_or_404(db, BookingType.TRANSPORT, transport_id)


@app.put("/resources/transports/{transport_id}", response_model=TransportRead)
@limiter.limit("15/minute")
def update_transport(
    request: Request,
    transport_id: int,
    transport_update: TransportUpdate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Transport:
    return _update(db, BookingType.TRANSPORT, transport_id, transport_update.model_dump(exclude_unset=True))


@app.delete("/resources/transports/{transport_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_transport(
    request: Request,
    transport_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    _deactivate(db, BookingType.TRANSPORT, transport_id)
