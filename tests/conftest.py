import os
import tempfile
from types import SimpleNamespace
from typing import Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "booking-test-logs"))

from booking_common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from booking_common.auth import get_password_hash  # noqa: E402
from booking_common.channels import DeliveryChannel, OutboundMessage, Recipient  # noqa: E402
from booking_common.database import Base, SessionLocal, engine  # noqa: E402
from booking_common.dependencies import get_dispatcher  # noqa: E402
from booking_common.errors import UpstreamError  # noqa: E402
from booking_common.models import RoleEnum, Room, Transport, User  # noqa: E402
from booking_common.notifications import NotificationDispatcher  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.notifications.app import app as notifications_app  # noqa: E402
from services.reports.app import app as reports_app  # noqa: E402
from services.resources.app import app as resources_app  # noqa: E402
from services.resources.app import listing_cache  # noqa: E402
from services.users.app import app as users_app  # noqa: E402

PASSWORD = "Passw0rd!"


class RecordingChannel(DeliveryChannel):
    """Delivery channel that keeps every message instead of sending it."""

    def __init__(self, name: str, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.sent: List[Tuple[Recipient, OutboundMessage]] = []

    def applies_to(self, recipient: Recipient) -> bool:
        return True

    def send(self, recipient: Recipient, message: OutboundMessage) -> None:
        self.sent.append((recipient, message))
        if self.fail:
            raise UpstreamError(f"{self.name} gateway unavailable")


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    listing_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def push_channel() -> RecordingChannel:
    return RecordingChannel("push")


@pytest.fixture()
def email_channel() -> RecordingChannel:
    return RecordingChannel("email")


@pytest.fixture()
def dispatcher(push_channel, email_channel) -> NotificationDispatcher:
    return NotificationDispatcher(channels=[push_channel, email_channel])


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def resources_client() -> Generator[TestClient, None, None]:
    with TestClient(resources_app) as client:
        yield client


@pytest.fixture()
def bookings_client(dispatcher) -> Generator[TestClient, None, None]:
    bookings_app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(bookings_app) as client:
        yield client
    bookings_app.dependency_overrides.clear()


@pytest.fixture()
def notifications_client() -> Generator[TestClient, None, None]:
    with TestClient(notifications_app) as client:
        yield client


@pytest.fixture()
def reports_client() -> Generator[TestClient, None, None]:
    with TestClient(reports_app) as client:
        yield client


def register_and_login(users_client, name: str, email: str, role: RoleEnum = RoleEnum.REQUESTER) -> SimpleNamespace:
    response = users_client.post(
        "/auth/register",
        json={"name": name, "email": email, "password": PASSWORD, "role": role.value},
    )
    assert response.status_code == 201, response.text
    login = users_client.post(
        "/auth/login",
        data={"username": email, "password": PASSWORD},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert login.status_code == 200, login.text
    token = login.json()["access_token"]
    return SimpleNamespace(id=response.json()["id"], email=email, headers={"Authorization": f"Bearer {token}"})


@pytest.fixture()
def admin(users_client) -> SimpleNamespace:
    return register_and_login(users_client, "Admin", "admin@example.com", RoleEnum.ADMIN)


@pytest.fixture()
def requester(users_client) -> SimpleNamespace:
    return register_and_login(users_client, "Dana Requester", "dana@example.com")


@pytest.fixture()
def other_requester(users_client) -> SimpleNamespace:
    return register_and_login(users_client, "Omar Requester", "omar@example.com")


@pytest.fixture()
def room(resources_client, admin) -> dict:
    response = resources_client.post(
        "/resources/rooms",
        json={"name": "Room 1", "capacity": 8, "facilities": ["projector", "whiteboard"]},
        headers=admin.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def transport(resources_client, admin) -> dict:
    response = resources_client.post(
        "/resources/transports",
        json={"vehicle_name": "Van A", "driver_name": "Sami", "capacity": 7},
        headers=admin.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def seeded(db_session) -> SimpleNamespace:
    """Admin, two requesters, a room and a transport inserted directly."""

    hashed = get_password_hash(PASSWORD)
    admin_user = User(name="Admin", email="admin@example.com", hashed_password=hashed, role=RoleEnum.ADMIN)
    alice = User(name="Alice", email="alice@example.com", hashed_password=hashed, push_token="ExponentPushToken[a]")
    bob = User(name="Bob", email="bob@example.com", hashed_password=hashed)
    db_session.add_all([admin_user, alice, bob])
    db_session.flush()
    room_row = Room(name="Room 1", capacity=8, facilities=["projector"])
    transport_row = Transport(vehicle_name="Van A", driver_name="Sami", capacity=7)
    db_session.add_all([room_row, transport_row])
    db_session.commit()
    return SimpleNamespace(
        admin_id=admin_user.id,
        alice_id=alice.id,
        bob_id=bob.id,
        room_id=room_row.id,
        transport_id=transport_row.id,
    )
