# tests/integration/test_booking_flow.py


def test_paid_booking_is_confirmed(client, make_slot, user_headers, callback_payload):
    slot_id = make_slot(price=2500)

    response = client.post(
        "/bookings",
        json={"slotId": slot_id, "playerCount": 10, "notes": "Five-a-side"},
        headers=user_headers,
    )

    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "PENDING"
    assert booking["amount"] == 2500
    assert booking["reference"].startswith("JTA-")
    assert len(booking["entryToken"]) == 32

    push_response = client.post(
        "/payments/push",
        json={"bookingId": booking["id"], "phoneNumber": "0712345678"},
        headers=user_headers,
    )
    assert push_response.status_code == 200
    checkout_request_id = push_response.json()["checkoutRequestId"]
    assert push_response.json()["status"] == "PROCESSING"

    ack = client.post(
        "/webhook/payment-callback",
        json=callback_payload(checkout_request_id, receipt="QGH7XYZ1"),
    )
    assert ack.status_code == 200
    assert ack.json() == {"resultCode": 0, "resultDescription": "Accepted"}

    status_response = client.get(f"/payments/status/{checkout_request_id}", headers=user_headers)
    assert status_response.status_code == 200
    assert status_response.json() == {
        "status": "COMPLETED",
        "receiptNumber": "QGH7XYZ1",
        "booking": {"id": booking["id"], "status": "CONFIRMED"},
    }

    detail = client.get(f"/bookings/{booking['id']}", headers=user_headers).json()
    assert detail["payment"]["status"] == "COMPLETED"
    assert detail["payment"]["receiptNumber"] == "QGH7XYZ1"
    assert detail["slot"]["bookedCount"] == 1


def test_failed_payment_cancels_booking(client, booked_and_pushed, user_headers, callback_payload):
    booking, push = booked_and_pushed()

    ack = client.post(
        "/webhook/payment-callback",
        json=callback_payload(push["checkoutRequestId"], result_code=1032),
    )
    assert ack.json()["resultCode"] == 0

    status = client.get(f"/payments/status/{push['checkoutRequestId']}", headers=user_headers).json()
    assert status["status"] == "FAILED"
    assert status["booking"]["status"] == "CANCELLED"

    detail = client.get(f"/bookings/{booking['id']}", headers=user_headers).json()
    assert detail["cancelledAt"] is not None
    # The slot is released for someone else.
    assert detail["slot"]["bookedCount"] == 0


def test_ticket_validates_once(
    client, booked_and_pushed, staff_headers, user_headers, callback_payload
):
    booking, push = booked_and_pushed()
    client.post("/webhook/payment-callback", json=callback_payload(push["checkoutRequestId"]))

    first = client.post(f"/tickets/validate/{booking['id']}", headers=staff_headers)
    assert first.status_code == 200
    validated_at = first.json()["booking"]["validatedAt"]
    assert validated_at is not None
    assert first.json()["booking"]["validatedBy"] == "staff-1"

    second = client.post(f"/tickets/validate/{booking['id']}", headers=staff_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "ALREADY_VALIDATED"

    detail = client.get(f"/bookings/{booking['id']}", headers=user_headers).json()
    assert detail["isValidated"] is True
    assert detail["validatedAt"] == validated_at


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
