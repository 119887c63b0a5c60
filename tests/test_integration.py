import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.main import app as fastapi_app
from app.database import Base
from app.models import GamingSession, Payment, Subscription
import app.routes

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_integration.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    # Setup: Create the tables
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    db.add_all([
        GamingSession(id="sess-1", user_id="user-1", status="pending"),
        Subscription(id="sub-1", user_id="user-1", status="pending"),
    ])
    db.commit()
    db.close()
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(monkeypatch):
    # Mock SessionLocal everywhere in the application to use the test database
    monkeypatch.setattr("app.routes.SessionLocal", TestingSessionLocal)
    monkeypatch.setattr("app.main.SessionLocal", TestingSessionLocal)

    with TestClient(fastapi_app) as c:
        yield c


def initiate(client, mocker, **linkage):
    gateway = mocker.patch("app.routes.request_payment", return_value={
        "success": 1,
        "redirect_url": "https://paytech.sn/payment/checkout/xyz",
        "token": "tok_xyz",
    })
    response = client.post("/api/pay-with-wave", json={
        "name": "Moussa", "phone": "781234567", "amount": 3000, **linkage,
    })
    assert response.status_code == 200
    return gateway.call_args.args[0]


def test_full_session_payment_lifecycle(client, mocker):
    """
    1. Initiate payment for a gaming session (pending row written)
    2. PayTech notifies completion with the round-tripped custom field
    3. Payment completed, session confirmed, subscription untouched
    """
    sent = initiate(client, mocker, session_id="sess-1")

    response = client.post("/api/payment-callback", json={
        "token": "tok_xyz",
        "status": "completed",
        "reference": sent["reference"],
        "custom_field": sent["custom_field"],
    })

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Payment notification received"}

    db = TestingSessionLocal()
    assert db.query(Payment).filter_by(reference=sent["reference"]).one().status == "completed"
    assert db.get(GamingSession, "sess-1").status == "confirmed"
    assert db.get(Subscription, "sub-1").status == "pending"
    db.close()


def test_full_subscription_payment_lifecycle(client, mocker):
    sent = initiate(client, mocker, subscription_id="sub-1")

    client.post("/api/payment-callback", json={
        "token": "tok_xyz",
        "status": "completed",
        "reference": sent["reference"],
        "custom_field": sent["custom_field"],
    })

    db = TestingSessionLocal()
    assert db.get(Subscription, "sub-1").status == "active"
    assert db.get(GamingSession, "sess-1").status == "pending"
    db.close()


def test_failed_payment_marks_row_failed(client, mocker):
    sent = initiate(client, mocker, session_id="sess-1")

    response = client.post("/api/payment-callback", json={
        "token": "tok_xyz",
        "status": "cancelled",
        "reference": sent["reference"],
        "custom_field": sent["custom_field"],
    })

    assert response.status_code == 200
    db = TestingSessionLocal()
    assert db.query(Payment).filter_by(reference=sent["reference"]).one().status == "failed"
    assert db.get(GamingSession, "sess-1").status == "pending"
    db.close()


def test_callback_session_takes_precedence(client, mocker):
    update_session = mocker.patch("app.main.update_session_status")
    update_subscription = mocker.patch("app.main.update_subscription_status")

    client.post("/api/payment-callback", json={
        "token": "t",
        "status": "completed",
        "custom_field": json.dumps({"session_id": "sess-1", "subscription_id": "sub-1"}),
    })

    update_session.assert_called_once_with(mocker.ANY, "sess-1", "confirmed")
    update_subscription.assert_not_called()


def test_callback_subscription_only(client, mocker):
    update_session = mocker.patch("app.main.update_session_status")
    update_subscription = mocker.patch("app.main.update_subscription_status")

    client.post("/api/payment-callback", json={
        "token": "t",
        "status": "completed",
        "custom_field": {"subscription_id": "sub-1"},
    })

    update_session.assert_not_called()
    update_subscription.assert_called_once_with(mocker.ANY, "sub-1", "active")


@pytest.mark.parametrize("body", [
    {"status": "completed"},
    {"token": "t"},
    {"token": "", "status": "completed"},
])
def test_callback_missing_fields(client, body):
    response = client.post("/api/payment-callback", json=body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid payment data"}


def test_callback_without_body(client):
    response = client.post("/api/payment-callback")

    assert response.status_code == 400


@pytest.mark.parametrize("custom_field", ["{not json", "42", "[1, 2]"])
def test_callback_malformed_custom_field(client, mocker, custom_field):
    update_session = mocker.patch("app.main.update_session_status")

    response = client.post("/api/payment-callback", json={
        "token": "t", "status": "completed", "reference": "WAVE-0-0", "custom_field": custom_field,
    })

    assert response.status_code == 200
    assert response.json()["success"] is True
    update_session.assert_not_called()


def test_callback_database_down_still_acknowledged(client, monkeypatch):
    Base.metadata.drop_all(bind=engine)

    response = client.post("/api/payment-callback", json={
        "token": "t",
        "status": "completed",
        "reference": "WAVE-0-0",
        "custom_field": json.dumps({"session_id": "sess-1"}),
    })

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_callback_unexpected_error(client, mocker):
    mocker.patch("app.main.parse_custom_field", side_effect=RuntimeError("boom"))

    response = client.post("/api/payment-callback", json={"token": "t", "status": "completed"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Error processing payment callback"}


def test_health(client):
    assert client.get("/api/health").json() == {"success": True, "status": "ok"}
