"""
Client-side payment status polling.

A bounded loop around a verify-by-id query: it stops on the first
terminal status or when the attempt budget is spent, and reports a
tagged outcome instead of driving callbacks. It never writes.
"""

from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Any, Callable, Mapping

import httpx


logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_INTERVAL_SECONDS = 1.0

StatusView = Mapping[str, Any]


class PollOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    attempts: int
    last_status: StatusView | None = None


_TERMINAL = {
    "COMPLETED": PollOutcome.COMPLETED,
    "FAILED": PollOutcome.FAILED,
}

# Client errors that still warrant another attempt.
_RETRYABLE_CLIENT_STATUSES = {408, 429}


def _is_client_error(exc: Exception) -> bool:
    if not isinstance(exc, httpx.HTTPStatusError):
        return False
    code = exc.response.status_code
    return 400 <= code < 500 and code not in _RETRYABLE_CLIENT_STATUSES


class StatusPoller:

    def __init__(
        self,
        verify: Callable[[str], StatusView],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        transient_errors: tuple[type[Exception], ...] = (httpx.HTTPError,),
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")

        self.verify = verify
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.transient_errors = transient_errors

    def poll(self, checkout_request_id: str) -> PollResult:
        last_status: StatusView | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                last_status = self.verify(checkout_request_id)
            except self.transient_errors as exc:
                if _is_client_error(exc):
                    raise
                logger.warning(
                    "Status check failed (attempt %s/%s): %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )
            else:
                status = last_status.get("status") if isinstance(last_status, Mapping) else None
                outcome = _TERMINAL.get(str(status))
                if outcome is not None:
                    return PollResult(outcome=outcome, attempts=attempt, last_status=last_status)

            if attempt < self.max_attempts:
                self.sleep(self.interval_seconds)

        logger.info(
            "Stopped polling after %s attempts. checkout_request_id=%s",
            self.max_attempts,
            checkout_request_id,
        )
        return PollResult(
            outcome=PollOutcome.TIMED_OUT,
            attempts=self.max_attempts,
            last_status=last_status,
        )


class PaymentStatusClient:
    """httpx-backed verify-by-id query against the booking API."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        role: str = "USER",
        client: httpx.Client | None = None,
        timeout_seconds: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"X-User-Id": user_id, "X-User-Role": role}
        self.client = client or httpx.Client(timeout=timeout_seconds)

    def __call__(self, checkout_request_id: str) -> StatusView:
        response = self.client.get(
            f"{self.base_url}/payments/status/{checkout_request_id}",
            headers=self.headers,
        )
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self.client.close()
