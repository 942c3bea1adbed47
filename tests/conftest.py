# tests/conftest.py

from datetime import date, timedelta
import itertools

from fastapi.testclient import TestClient
import pytest

from src.api.app import create_app
from src.infrastructure.config import Settings
from src.infrastructure.db.models import Slot
from src.infrastructure.db.session import session_scope
from src.infrastructure.gateways.mpesa_gateway import (
    GatewayFailure,
    ProviderState,
    ProviderStatus,
    PushAccepted,
)


SLOT_DAY = date.today() + timedelta(days=1)


class FakeGateway:
    """In-memory stand-in for the Daraja adapter."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.pushes: list[dict] = []
        self.failure: GatewayFailure | None = None
        self.provider_status = ProviderStatus(state=ProviderState.PENDING)

    def initiate(self, phone_number, amount, reference, description):
        self.pushes.append(
            {
                "phone_number": phone_number,
                "amount": amount,
                "reference": reference,
                "description": description,
            }
        )
        if self.failure:
            return self.failure
        n = next(self._ids)
        return PushAccepted(
            merchant_request_id=f"mr-{n}",
            checkout_request_id=f"ws_CO_{n:04d}",
            response_description="Success. Request accepted for processing",
            customer_message="Success. Request accepted for processing",
        )

    def query_status(self, checkout_request_id):
        return self.provider_status


@pytest.fixture
def slot_day():
    return SLOT_DAY


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", db_connect_max_retries=1)


@pytest.fixture
def app(settings, gateway):
    return create_app(settings=settings, gateway=gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_factory(app, client):
    # Depends on client so the lifespan has created the tables.
    return app.state.session_factory


@pytest.fixture
def make_slot(session_factory):
    hours = itertools.count(6)

    def _make_slot(price=2500, capacity=1, is_available=True, day=SLOT_DAY, start_time=None):
        hour = next(hours)
        start_time = start_time or f"{hour:02d}:00"
        end_hour = int(start_time[:2]) + 1
        with session_scope(session_factory) as db:
            slot = Slot(
                date=day,
                start_time=start_time,
                end_time=f"{end_hour:02d}:00",
                price=price,
                capacity=capacity,
                booked_count=0,
                is_available=is_available,
            )
            db.add(slot)
            db.flush()
            return slot.id

    return _make_slot


def headers_for(user_id: str, role: str = "USER") -> dict:
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture
def user_headers():
    return headers_for("user-1")


@pytest.fixture
def other_user_headers():
    return headers_for("user-2")


@pytest.fixture
def staff_headers():
    return headers_for("staff-1", "STAFF")


@pytest.fixture
def admin_headers():
    return headers_for("admin-1", "ADMIN")


def stk_callback(
    checkout_request_id: str,
    result_code: int = 0,
    receipt: str = "QGH7XYZ1",
    amount: int = 2500,
    phone: int = 254712345678,
) -> dict:
    callback = {
        "MerchantRequestID": "mr-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": (
            "The service request is processed successfully."
            if result_code == 0
            else "Request cancelled by user"
        ),
    }
    if result_code == 0:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "Balance"},
                {"Name": "TransactionDate", "Value": 20260118102115},
                {"Name": "PhoneNumber", "Value": phone},
            ]
        }
    return {"Body": {"stkCallback": callback}}


@pytest.fixture
def callback_payload():
    return stk_callback


@pytest.fixture
def booked_and_pushed(client, make_slot, user_headers):
    """Creates a booking on a fresh slot and starts its push payment."""

    def _booked_and_pushed(price=2500, headers=None):
        headers = headers or user_headers
        slot_id = make_slot(price=price)
        booking = client.post(
            "/bookings",
            json={"slotId": slot_id, "playerCount": 10},
            headers=headers,
        ).json()
        push = client.post(
            "/payments/push",
            json={"bookingId": booking["id"], "phoneNumber": "0712345678"},
            headers=headers,
        ).json()
        return booking, push

    return _booked_and_pushed
