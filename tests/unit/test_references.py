import re

import pytest

from src.application.booking_service import generate_entry_token, generate_reference
from src.application.slot_service import parse_slot_date
from src.domain.exceptions import InvalidSlotDateError


def test_reference_format():
    reference = generate_reference("JTA")

    assert re.fullmatch(r"JTA-\d{13}-[A-Z0-9]{6}", reference)


def test_references_are_unique():
    assert len({generate_reference("JTA") for _ in range(200)}) == 200


def test_entry_token_is_url_safe_and_32_chars():
    token = generate_entry_token()

    assert len(token) == 32
    assert re.fullmatch(r"[A-Za-z0-9_-]{32}", token)


def test_slot_date_accepts_iso_datetime_prefix():
    assert parse_slot_date("2026-02-14T00:00:00.000Z").isoformat() == "2026-02-14"


@pytest.mark.parametrize("value", [None, "", "14/02/2026", "2026-02-30", "2026-02-14garbage"])
def test_slot_date_rejects_garbage(value):
    with pytest.raises(InvalidSlotDateError):
        parse_slot_date(value)
