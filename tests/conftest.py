"""
Shared fixtures: an in-memory database per test, a TestClient wired to it
and a small cast of businesses and users.
"""
import os
import secrets
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STATIC_DIR", tempfile.mkdtemp(prefix="freshdock-static-"))
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.mkdtemp(prefix="freshdock-logs-"), "test.log"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from freshdock.core import audit
from freshdock.db import schema  # noqa: F401
from freshdock.db.core import get_session
from freshdock.db.schema import (
    Business, BusinessType, Connection, ConnectionStatus,
    StaffPosition, User, UserRole
)
from freshdock.main import app
from freshdock.services.password import get_password_hash
from freshdock.services.user import UserService

PASSWORD = "correct-horse"


@pytest.fixture(name="engine")
def engine_fixture(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    # Fire-and-forget event logging opens its own session
    monkeypatch.setattr(audit, "engine", engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine):
    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def make_business(session: Session, name: str, business_type: BusinessType, **extra) -> Business:
    if business_type == BusinessType.RECEIVER:
        extra.setdefault("public_intake_token", secrets.token_urlsafe(24))
    business = Business(name=name, business_type=business_type, **extra)
    session.add(business)
    session.commit()
    session.refresh(business)
    return business


def make_user(
    session: Session,
    email: str,
    role: UserRole,
    business: Business = None,
    staff_position: StaffPosition = None,
    owner: bool = False,
) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        display_name=email.split("@")[0],
        company_name=business.name if business else "",
        role=role,
        staff_position=staff_position,
        business_id=business.id if business else None,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    if owner and business is not None:
        business.owner_id = user.id
        session.add(business)
        session.commit()
    return user


def auth_headers(session: Session, user: User) -> dict:
    token = UserService(session).generate_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def receiver(session):
    return make_business(session, "Northside Packhouse", BusinessType.RECEIVER,
                         city="Bundaberg", phone="07 4150 0000", email="dock@northside.com.au")


@pytest.fixture
def grower_business(session):
    return make_business(session, "Sunny Ridge Farms", BusinessType.SUPPLIER,
                         grower_code="SRF01", city="Childers")


@pytest.fixture
def admin(session, receiver):
    return make_user(session, "admin@northside.com.au", UserRole.STAFF, receiver,
                     StaffPosition.ADMIN, owner=True)


@pytest.fixture
def dock_hand(session, receiver):
    return make_user(session, "dock@northside.com.au", UserRole.STAFF, receiver,
                     StaffPosition.DOCK_HAND)


@pytest.fixture
def grower(session, grower_business):
    return make_user(session, "sam@sunnyridge.com.au", UserRole.SUPPLIER, grower_business,
                     owner=True)


@pytest.fixture
def connected(session, grower_business, receiver):
    connection = Connection(
        supplier_business_id=grower_business.id,
        receiver_business_id=receiver.id,
        status=ConnectionStatus.APPROVED,
    )
    session.add(connection)
    session.commit()
    return connection


@pytest.fixture
def admin_headers(session, admin):
    return auth_headers(session, admin)


@pytest.fixture
def dock_headers(session, dock_hand):
    return auth_headers(session, dock_hand)


@pytest.fixture
def grower_headers(session, grower):
    return auth_headers(session, grower)


def dispatch_payload(grower_business=None, receiver=None, **overrides) -> dict:
    if grower_business is not None:
        grower = {"kind": "business", "business_id": str(grower_business.id)}
    else:
        grower = {"kind": "free_text", "name": "Hillside Orchard", "code": "HO7"}
    payload = {
        "grower": grower,
        "receiver_business_id": str(receiver.id) if receiver else None,
        "dispatch_date": "2026-10-19",
        "expected_arrival": "2026-10-20",
        "estimated_arrival_window_start": "06:00",
        "estimated_arrival_window_end": "08:00",
        "carrier": "Coastal Freight",
        "total_pallets": 4,
        "items": [
            {"product": "Bananas", "variety": "Cavendish", "size": "Large",
             "tray_type": "Carton", "quantity": 60, "unit_weight": 13},
            {"product": "Avocados", "variety": "Hass", "quantity": 40},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def submitted(client, grower_business, receiver, grower_headers, connected):
    """A pending dispatch sent by the grower to the receiver."""
    response = client.post(
        "/api/v1/dispatches",
        json=dispatch_payload(grower_business, receiver),
        headers=grower_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()
