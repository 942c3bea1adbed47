# src/domain/phone.py

import re

from src.domain.exceptions import InvalidPhoneNumberError

COUNTRY_CODE = "254"

_SEPARATORS = re.compile(r"[\s\-+()]")
_CANONICAL = re.compile(r"^2547\d{8}$|^2541\d{8}$")


def normalize_msisdn(phone: str) -> str:
    """
    Rewrites a Kenyan mobile number to the 2547XXXXXXXX form the
    payment provider expects.

    Accepts 07XXXXXXXX, 01XXXXXXXX, +2547XXXXXXXX, 2547XXXXXXXX and the bare
    subscriber number 7XXXXXXXX / 1XXXXXXXX.
    """
    if not phone:
        raise InvalidPhoneNumberError()

    digits = _SEPARATORS.sub("", phone)

    if digits.startswith("0"):
        digits = COUNTRY_CODE + digits[1:]
    elif digits.startswith(("7", "1")) and len(digits) == 9:
        digits = COUNTRY_CODE + digits

    if not _CANONICAL.match(digits):
        raise InvalidPhoneNumberError()

    return digits
