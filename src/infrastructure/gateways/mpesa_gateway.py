# src/infrastructure/gateways/mpesa_gateway.py

from base64 import b64encode
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
import threading
import time
from typing import Callable, Protocol

import httpx

from src.domain.exceptions import InvalidPhoneNumberError
from src.domain.mpesa_callback import SUCCESS_RESULT_CODE
from src.domain.phone import normalize_msisdn
from src.infrastructure.config import MpesaConfig


logger = logging.getLogger(__name__)

EAST_AFRICA_TIME = timezone(timedelta(hours=3))

# Returned by the query API while the payer has not answered the prompt yet.
TRANSACTION_IN_PROGRESS_CODE = "500.001.1001"


@dataclass(frozen=True)
class PushAccepted:
    merchant_request_id: str
    checkout_request_id: str
    response_description: str = ""
    customer_message: str = ""


class ProviderState(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ProviderStatus:
    state: ProviderState
    result_code: int | None = None
    result_description: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.state != ProviderState.PENDING


@dataclass(frozen=True)
class GatewayFailure:
    reason: str
    status_code: int | None = None


class PaymentGateway(Protocol):
    def initiate(
        self,
        phone_number: str,
        amount: int,
        reference: str,
        description: str,
    ) -> PushAccepted | GatewayFailure: ...

    def query_status(
        self,
        checkout_request_id: str,
    ) -> ProviderStatus | GatewayFailure: ...


class _TokenError(Exception):
    pass


class MpesaGateway:
    """
    Daraja STK push adapter.

    Every public method returns either a result object or a
    GatewayFailure; network and provider errors never propagate.
    """

    TOKEN_REFRESH_MARGIN_SECONDS = 60

    def __init__(
        self,
        config: MpesaConfig,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.client = client or httpx.Client(timeout=config.timeout_seconds)
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def close(self) -> None:
        self.client.close()

    # -----------------------------
    # Credentials
    # -----------------------------
    def _access_token(self) -> str:
        with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            credentials = f"{self.config.consumer_key}:{self.config.consumer_secret}"
            auth = b64encode(credentials.encode("utf-8")).decode("ascii")

            try:
                response = self.client.get(
                    f"{self.config.base_url}/oauth/v1/generate",
                    params={"grant_type": "client_credentials"},
                    headers={"Authorization": f"Basic {auth}"},
                )
                response.raise_for_status()
                data = _json_or_empty(response)
                token = data["access_token"]
                expires_in = int(data.get("expires_in", 3599))
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                logger.error("M-Pesa token error: %s", exc)
                raise _TokenError("Failed to get M-Pesa access token") from exc

            self._token = token
            self._token_expires_at = (
                self._clock() + max(expires_in - self.TOKEN_REFRESH_MARGIN_SECONDS, 0)
            )
            return token

    def _password(self) -> tuple[str, str]:
        timestamp = datetime.now(EAST_AFRICA_TIME).strftime("%Y%m%d%H%M%S")
        raw = f"{self.config.shortcode}{self.config.passkey}{timestamp}"
        password = b64encode(raw.encode("utf-8")).decode("ascii")
        return password, timestamp

    def _post(self, path: str, payload: dict) -> httpx.Response:
        token = self._access_token()
        response = self.client.post(
            f"{self.config.base_url}{path}",
            json=payload,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response

    # -----------------------------
    # STK push
    # -----------------------------
    def initiate(
        self,
        phone_number: str,
        amount: int,
        reference: str,
        description: str,
    ) -> PushAccepted | GatewayFailure:
        try:
            msisdn = normalize_msisdn(phone_number)
        except InvalidPhoneNumberError as exc:
            return GatewayFailure(reason=exc.message)

        password, timestamp = self._password()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": int(round(amount)),
            "PartyA": msisdn,
            "PartyB": self.config.shortcode,
            "PhoneNumber": msisdn,
            "CallBackURL": self.config.callback_url,
            "AccountReference": reference,
            "TransactionDesc": description,
        }

        try:
            data = _json_or_empty(self._post("/mpesa/stkpush/v1/processrequest", payload))
        except _TokenError as exc:
            return GatewayFailure(reason=str(exc))
        except httpx.HTTPStatusError as exc:
            reason = _error_message(exc.response) or "Payment initiation failed"
            logger.error(
                "M-Pesa STK push rejected. status=%s reason=%s",
                exc.response.status_code,
                reason,
            )
            return GatewayFailure(reason=reason, status_code=exc.response.status_code)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("M-Pesa STK push error: %s", exc)
            return GatewayFailure(reason="Payment initiation failed")

        if str(data.get("ResponseCode", "")) != "0" or not data.get("CheckoutRequestID"):
            reason = data.get("ResponseDescription") or data.get("errorMessage") or "Payment initiation failed"
            logger.error("M-Pesa STK push not accepted: %s", reason)
            return GatewayFailure(reason=reason)

        logger.info(
            "STK push accepted. reference=%s checkout_request_id=%s",
            reference,
            data["CheckoutRequestID"],
        )
        return PushAccepted(
            merchant_request_id=data.get("MerchantRequestID", ""),
            checkout_request_id=data["CheckoutRequestID"],
            response_description=data.get("ResponseDescription", ""),
            customer_message=data.get("CustomerMessage", ""),
        )

    # -----------------------------
    # Query
    # -----------------------------
    def query_status(
        self,
        checkout_request_id: str,
    ) -> ProviderStatus | GatewayFailure:
        password, timestamp = self._password()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }

        try:
            data = _json_or_empty(self._post("/mpesa/stkpushquery/v1/query", payload))
        except _TokenError as exc:
            return GatewayFailure(reason=str(exc))
        except httpx.HTTPStatusError as exc:
            body = _json_or_empty(exc.response)
            if body.get("errorCode") == TRANSACTION_IN_PROGRESS_CODE:
                return ProviderStatus(
                    state=ProviderState.PENDING,
                    result_description=body.get("errorMessage", ""),
                )
            reason = body.get("errorMessage") or "Query failed"
            logger.error("M-Pesa query error: %s", reason)
            return GatewayFailure(reason=reason, status_code=exc.response.status_code)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("M-Pesa query error: %s", exc)
            return GatewayFailure(reason="Query failed")

        try:
            result_code = int(data["ResultCode"])
        except (KeyError, TypeError, ValueError):
            return ProviderStatus(
                state=ProviderState.PENDING,
                result_description=data.get("ResponseDescription", ""),
            )

        state = (
            ProviderState.SUCCESS
            if result_code == SUCCESS_RESULT_CODE
            else ProviderState.FAILED
        )
        return ProviderStatus(
            state=state,
            result_code=result_code,
            result_description=data.get("ResultDesc", ""),
        )


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_message(response: httpx.Response) -> str | None:
    return _json_or_empty(response).get("errorMessage")
