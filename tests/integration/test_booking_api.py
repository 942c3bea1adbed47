import pytest


def _book(client, slot_id, headers, player_count=10):
    return client.post(
        "/bookings",
        json={"slotId": slot_id, "playerCount": player_count},
        headers=headers,
    )


# ---------------------
# CREATE
# ---------------------

@pytest.mark.parametrize("player_count", [1, 22])
def test_player_count_bounds_are_inclusive(client, make_slot, user_headers, player_count):
    response = _book(client, make_slot(), user_headers, player_count=player_count)

    assert response.status_code == 201
    assert response.json()["playerCount"] == player_count


@pytest.mark.parametrize("player_count", [0, 23])
def test_player_count_outside_bounds_is_rejected(client, make_slot, user_headers, player_count):
    slot_id = make_slot()

    response = _book(client, slot_id, user_headers, player_count=player_count)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PLAYER_COUNT"
    assert response.json()["category"] == "validation"

    # Nothing was claimed.
    assert _book(client, slot_id, user_headers).status_code == 201


def test_unknown_slot(client, user_headers):
    response = _book(client, "missing", user_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "SLOT_NOT_FOUND"


def test_unavailable_slot(client, make_slot, user_headers):
    response = _book(client, make_slot(is_available=False), user_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "SLOT_UNAVAILABLE"


def test_full_slot(client, make_slot, user_headers, other_user_headers):
    slot_id = make_slot(capacity=1)
    assert _book(client, slot_id, user_headers).status_code == 201

    response = _book(client, slot_id, other_user_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "SLOT_FULL"


def test_booking_requires_identity(client, make_slot):
    response = client.post("/bookings", json={"slotId": make_slot(), "playerCount": 5})

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_unknown_role_is_rejected(client, make_slot):
    response = _book(client, make_slot(), {"X-User-Id": "u", "X-User-Role": "OWNER"})

    assert response.status_code == 401


def test_malformed_body_is_a_schema_error(client, user_headers):
    response = client.post("/bookings", json={"playerCount": 5}, headers=user_headers)

    assert response.status_code == 422


# ---------------------
# READ
# ---------------------

def test_bookings_are_private_to_owner_and_admin(
    client, make_slot, user_headers, other_user_headers, admin_headers
):
    booking_id = _book(client, make_slot(), user_headers).json()["id"]

    assert client.get(f"/bookings/{booking_id}", headers=user_headers).status_code == 200
    assert client.get(f"/bookings/{booking_id}", headers=admin_headers).status_code == 200

    response = client.get(f"/bookings/{booking_id}", headers=other_user_headers)
    assert response.status_code == 403


def test_missing_booking(client, user_headers):
    assert client.get("/bookings/nope", headers=user_headers).status_code == 404


def test_list_own_bookings_paginates(client, make_slot, user_headers, other_user_headers):
    for _ in range(3):
        _book(client, make_slot(), user_headers)
    _book(client, make_slot(), other_user_headers)

    page_one = client.get("/bookings?page=1&limit=2", headers=user_headers).json()
    page_two = client.get("/bookings?page=2&limit=2", headers=user_headers).json()

    assert page_one["pagination"] == {"total": 3, "page": 1, "limit": 2, "pages": 2}
    assert len(page_one["bookings"]) == 2
    assert len(page_two["bookings"]) == 1
    ids = {b["id"] for b in page_one["bookings"] + page_two["bookings"]}
    assert len(ids) == 3
    assert all(b["userId"] == "user-1" for b in page_one["bookings"])


def test_list_filters_by_status(client, make_slot, user_headers):
    keep = _book(client, make_slot(), user_headers).json()["id"]
    drop = _book(client, make_slot(), user_headers).json()["id"]
    client.patch(f"/bookings/{drop}", json={"status": "CANCELLED"}, headers=user_headers)

    pending = client.get("/bookings?status=PENDING", headers=user_headers).json()

    assert [b["id"] for b in pending["bookings"]] == [keep]


# ---------------------
# UPDATE
# ---------------------

def test_owner_can_cancel_pending_booking(client, make_slot, user_headers, slot_day):
    slot_id = make_slot()
    booking_id = _book(client, slot_id, user_headers).json()["id"]

    response = client.patch(
        f"/bookings/{booking_id}",
        json={"status": "CANCELLED"},
        headers=user_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancelledAt"] is not None

    available = client.get(f"/slots/available?date={slot_day.isoformat()}").json()["slots"]
    assert slot_id in {s["id"] for s in available}


def test_owner_cannot_cancel_confirmed_booking(
    client, booked_and_pushed, user_headers, callback_payload
):
    booking, push = booked_and_pushed()
    client.post("/webhook/payment-callback", json=callback_payload(push["checkoutRequestId"]))

    response = client.patch(
        f"/bookings/{booking['id']}",
        json={"status": "CANCELLED"},
        headers=user_headers,
    )

    assert response.status_code == 403


def test_owner_cannot_confirm_own_booking(client, make_slot, user_headers):
    booking_id = _book(client, make_slot(), user_headers).json()["id"]

    response = client.patch(
        f"/bookings/{booking_id}",
        json={"status": "CONFIRMED"},
        headers=user_headers,
    )

    assert response.status_code == 403


def test_other_user_cannot_cancel(client, make_slot, user_headers, other_user_headers):
    booking_id = _book(client, make_slot(), user_headers).json()["id"]

    response = client.patch(
        f"/bookings/{booking_id}",
        json={"status": "CANCELLED"},
        headers=other_user_headers,
    )

    assert response.status_code == 403


def test_admin_can_set_any_status(client, make_slot, user_headers, admin_headers):
    booking_id = _book(client, make_slot(), user_headers).json()["id"]

    response = client.patch(
        f"/bookings/{booking_id}",
        json={"status": "COMPLETED", "notes": "Played"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["notes"] == "Played"
    assert response.json()["slot"]["bookedCount"] == 0


def test_admin_reinstating_booking_respects_capacity(
    client, make_slot, user_headers, other_user_headers, admin_headers
):
    slot_id = make_slot(capacity=1)
    first = _book(client, slot_id, user_headers).json()["id"]
    client.patch(f"/bookings/{first}", json={"status": "CANCELLED"}, headers=user_headers)
    assert _book(client, slot_id, other_user_headers).status_code == 201

    response = client.patch(
        f"/bookings/{first}",
        json={"status": "PENDING"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "SLOT_FULL"
    detail = client.get(f"/bookings/{first}", headers=admin_headers).json()
    assert detail["status"] == "CANCELLED"


# ---------------------
# SLOTS
# ---------------------

def test_available_slots_exclude_full_and_closed(
    client, make_slot, user_headers, slot_day
):
    open_id = make_slot(start_time="08:00")
    full_id = make_slot(start_time="07:00")
    make_slot(start_time="09:00", is_available=False)
    _book(client, full_id, user_headers)

    response = client.get(f"/slots/available?date={slot_day.isoformat()}")

    assert response.status_code == 200
    assert [s["id"] for s in response.json()["slots"]] == [open_id]
    assert response.json()["slots"][0]["startTime"] == "08:00"


def test_available_slots_are_ordered_by_start_time(client, make_slot, slot_day):
    later = make_slot(start_time="18:00")
    earlier = make_slot(start_time="06:00")

    slots = client.get(f"/slots/available?date={slot_day.isoformat()}").json()["slots"]

    assert [s["id"] for s in slots] == [earlier, later]


@pytest.mark.parametrize(
    "query", ["", "?date=", "?date=tomorrow", "?date=2026-13-40", "?date=2026-02-14garbage"]
)
def test_available_slots_reject_bad_dates(client, query):
    response = client.get(f"/slots/available{query}")

    assert response.status_code == 404
    assert response.json()["code"] == "INVALID_DATE"
