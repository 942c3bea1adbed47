import pytest


@pytest.fixture
def confirmed_booking(client, booked_and_pushed, callback_payload):
    booking, push = booked_and_pushed()
    client.post("/webhook/payment-callback", json=callback_payload(push["checkoutRequestId"]))
    return booking


def test_lookup_by_entry_token(client, confirmed_booking, staff_headers):
    response = client.get(
        "/tickets/lookup",
        params={"code": confirmed_booking["entryToken"]},
        headers=staff_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == confirmed_booking["id"]
    assert body["status"] == "CONFIRMED"
    assert body["payment"]["status"] == "COMPLETED"
    assert body["slot"]["id"] == confirmed_booking["slotId"]
    assert body["isValidated"] is False


def test_lookup_by_reference(client, confirmed_booking, staff_headers):
    response = client.get(
        "/tickets/lookup",
        params={"code": confirmed_booking["reference"]},
        headers=staff_headers,
    )

    assert response.json()["id"] == confirmed_booking["id"]


def test_lookup_unknown_code(client, staff_headers):
    response = client.get("/tickets/lookup", params={"code": "JTA-0-NOPE00"}, headers=staff_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "TICKET_NOT_FOUND"


def test_players_cannot_use_the_gate_endpoints(client, confirmed_booking, user_headers):
    lookup = client.get(
        "/tickets/lookup",
        params={"code": confirmed_booking["reference"]},
        headers=user_headers,
    )
    validate = client.post(f"/tickets/validate/{confirmed_booking['id']}", headers=user_headers)

    assert lookup.status_code == 403
    assert validate.status_code == 403


def test_pending_booking_is_not_confirmed(client, booked_and_pushed, staff_headers):
    booking, _push = booked_and_pushed()

    response = client.post(f"/tickets/validate/{booking['id']}", headers=staff_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "NOT_CONFIRMED"


def test_confirmed_without_completed_payment(client, make_slot, user_headers, admin_headers, staff_headers):
    booking = client.post(
        "/bookings",
        json={"slotId": make_slot(), "playerCount": 8},
        headers=user_headers,
    ).json()
    client.patch(f"/bookings/{booking['id']}", json={"status": "CONFIRMED"}, headers=admin_headers)

    response = client.post(f"/tickets/validate/{booking['id']}", headers=staff_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "PAYMENT_INCOMPLETE"


def test_already_validated_is_checked_first(client, confirmed_booking, staff_headers, admin_headers):
    client.post(f"/tickets/validate/{confirmed_booking['id']}", headers=staff_headers)
    client.patch(
        f"/bookings/{confirmed_booking['id']}",
        json={"status": "COMPLETED"},
        headers=admin_headers,
    )

    response = client.post(f"/tickets/validate/{confirmed_booking['id']}", headers=staff_headers)

    assert response.json()["code"] == "ALREADY_VALIDATED"


def test_validate_unknown_booking(client, staff_headers):
    response = client.post("/tickets/validate/missing", headers=staff_headers)

    assert response.status_code == 404
