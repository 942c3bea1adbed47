import argparse
import logging
import sys

import httpx

from src.application.status_poller import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    PaymentStatusClient,
    PollOutcome,
    StatusPoller,
)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Poll a push payment until it settles.")
    parser.add_argument("checkout_request_id")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--role", default="USER")
    parser.add_argument("--max-attempts", type=int, default=DEFAULT_MAX_ATTEMPTS)
    parser.add_argument("--interval", type=float, default=DEFAULT_INTERVAL_SECONDS)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    client = PaymentStatusClient(args.base_url, user_id=args.user_id, role=args.role)
    try:
        poller = StatusPoller(
            client,
            max_attempts=args.max_attempts,
            interval_seconds=args.interval,
        )
        result = poller.poll(args.checkout_request_id)
    except httpx.HTTPStatusError as exc:
        print(f"Status check rejected: HTTP {exc.response.status_code}")
        return 2
    finally:
        client.close()

    print(f"{result.outcome.value} after {result.attempts} attempt(s)")
    if result.outcome == PollOutcome.TIMED_OUT:
        print("Payment not confirmed yet. Check My Bookings later.")
    return 0 if result.outcome == PollOutcome.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
