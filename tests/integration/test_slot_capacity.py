from concurrent.futures import ThreadPoolExecutor
from datetime import date
import threading

import pytest
from sqlalchemy import func, select

from src.application.booking_service import BookingService
from src.domain.exceptions import SlotFullError
from src.domain.permissions import Actor, Role
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Base, Booking, Slot
from src.infrastructure.db.session import build_engine, build_session_factory, session_scope


@pytest.fixture
def file_session_factory(tmp_path):
    # A file database so each thread gets its own connection.
    engine = build_engine(f"sqlite:///{tmp_path / 'capacity.db'}")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


def _slot(factory, capacity):
    with session_scope(factory) as db:
        slot = Slot(
            date=date(2026, 2, 14),
            start_time="18:00",
            end_time="19:00",
            price=2500,
            capacity=capacity,
        )
        db.add(slot)
        db.flush()
        return slot.id


def _occupancy(factory, slot_id):
    with session_scope(factory) as db:
        slot = db.get(Slot, slot_id)
        occupying = db.execute(
            select(func.count())
            .select_from(Booking)
            .where(Booking.slot_id == slot_id)
            .where(Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]))
        ).scalar_one()
        return slot.booked_count, occupying


@pytest.mark.parametrize("capacity", [1, 3])
def test_concurrent_bookings_never_exceed_capacity(file_session_factory, capacity):
    slot_id = _slot(file_session_factory, capacity)
    start = threading.Barrier(8)

    def attempt(n):
        start.wait()
        try:
            with session_scope(file_session_factory) as db:
                BookingService(db).create_booking(f"user-{n}", slot_id, player_count=10)
            return "booked"
        except SlotFullError:
            return "full"

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(8)))

    assert results.count("booked") == capacity
    assert results.count("full") == 8 - capacity
    assert _occupancy(file_session_factory, slot_id) == (capacity, capacity)


def test_last_unit_can_be_taken_and_then_slot_is_full(file_session_factory):
    slot_id = _slot(file_session_factory, capacity=2)

    with session_scope(file_session_factory) as db:
        BookingService(db).create_booking("user-1", slot_id, player_count=5)

    # capacity - 1 occupied: the next booking still fits.
    with session_scope(file_session_factory) as db:
        BookingService(db).create_booking("user-2", slot_id, player_count=5)

    with pytest.raises(SlotFullError):
        with session_scope(file_session_factory) as db:
            BookingService(db).create_booking("user-3", slot_id, player_count=5)

    assert _occupancy(file_session_factory, slot_id) == (2, 2)


def test_cancelling_frees_the_unit(file_session_factory):
    slot_id = _slot(file_session_factory, capacity=1)
    owner = Actor("user-1")

    with session_scope(file_session_factory) as db:
        booking_id = BookingService(db).create_booking("user-1", slot_id, player_count=5).id

    with session_scope(file_session_factory) as db:
        BookingService(db).cancel(booking_id, owner)

    assert _occupancy(file_session_factory, slot_id) == (0, 0)

    with session_scope(file_session_factory) as db:
        BookingService(db).create_booking("user-2", slot_id, player_count=5)

    assert _occupancy(file_session_factory, slot_id) == (1, 1)


def test_repeated_payment_results_do_not_double_release(file_session_factory):
    slot_id = _slot(file_session_factory, capacity=1)

    with session_scope(file_session_factory) as db:
        booking_id = BookingService(db).create_booking("user-1", slot_id, player_count=5).id

    with session_scope(file_session_factory) as db:
        assert BookingService(db).transition_on_payment_result(booking_id, success=False)
    with session_scope(file_session_factory) as db:
        assert not BookingService(db).transition_on_payment_result(booking_id, success=False)
    with session_scope(file_session_factory) as db:
        assert not BookingService(db).transition_on_payment_result(booking_id, success=True)

    assert _occupancy(file_session_factory, slot_id) == (0, 0)


def test_admin_moves_between_occupying_states_keep_count(file_session_factory):
    slot_id = _slot(file_session_factory, capacity=1)
    admin = Actor("admin-1", Role.ADMIN)

    with session_scope(file_session_factory) as db:
        booking_id = BookingService(db).create_booking("user-1", slot_id, player_count=5).id

    with session_scope(file_session_factory) as db:
        BookingService(db).set_status(booking_id, BookingStatus.CONFIRMED, admin)
    assert _occupancy(file_session_factory, slot_id) == (1, 1)

    with session_scope(file_session_factory) as db:
        BookingService(db).set_status(booking_id, BookingStatus.NO_SHOW, admin)
    assert _occupancy(file_session_factory, slot_id) == (0, 0)
