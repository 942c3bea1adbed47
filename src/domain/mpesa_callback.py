# src/domain/mpesa_callback.py
"""
Typed view of the STK push callback envelope.

The provider posts:

    {"Body": {"stkCallback": {
        "MerchantRequestID": "...",
        "CheckoutRequestID": "ws_CO_...",
        "ResultCode": 0,
        "ResultDesc": "The service request is processed successfully.",
        "CallbackMetadata": {"Item": [
            {"Name": "Amount", "Value": 2500},
            {"Name": "MpesaReceiptNumber", "Value": "QGH7XYZ1"},
            {"Name": "Balance"},
            {"Name": "TransactionDate", "Value": 20260118102115},
            {"Name": "PhoneNumber", "Value": 254712345678}
        ]}
    }}}

ResultCode and CheckoutRequestID are required; every metadata item is optional.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

SUCCESS_RESULT_CODE = 0


class CallbackItem(BaseModel):
    name: str = Field(alias="Name")
    value: Any = Field(default=None, alias="Value")


class CallbackMetadata(BaseModel):
    items: list[CallbackItem] = Field(default_factory=list, alias="Item")


class StkCallback(BaseModel):
    merchant_request_id: str | None = Field(default=None, alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID", min_length=1)
    result_code: int = Field(alias="ResultCode")
    result_desc: str = Field(default="", alias="ResultDesc")
    callback_metadata: CallbackMetadata | None = Field(default=None, alias="CallbackMetadata")


class CallbackBody(BaseModel):
    stk_callback: StkCallback = Field(alias="stkCallback")


class CallbackEnvelope(BaseModel):
    body: CallbackBody = Field(alias="Body")


class MalformedCallbackError(Exception):
    """Raised when a callback payload is missing required fields."""


@dataclass(frozen=True)
class PaymentMetadata:
    receipt_number: str | None = None
    amount: int | None = None
    phone_number: str | None = None
    transaction_date: str | None = None

    @classmethod
    def from_items(cls, items: list[CallbackItem]) -> "PaymentMetadata":
        values: dict[str, Any] = {
            item.name: item.value for item in items if item.value is not None
        }

        amount = values.get("Amount")
        return cls(
            receipt_number=_as_str(values.get("MpesaReceiptNumber")),
            amount=int(round(float(amount))) if amount is not None else None,
            phone_number=_as_str(values.get("PhoneNumber")),
            transaction_date=_as_str(values.get("TransactionDate")),
        )


@dataclass(frozen=True)
class PaymentResult:
    checkout_request_id: str
    merchant_request_id: str | None
    result_code: int
    result_description: str
    metadata: PaymentMetadata

    @property
    def succeeded(self) -> bool:
        return self.result_code == SUCCESS_RESULT_CODE


def parse_callback(payload: Mapping[str, Any] | None) -> PaymentResult:
    if not isinstance(payload, Mapping):
        raise MalformedCallbackError("Callback payload must be a JSON object")

    try:
        envelope = CallbackEnvelope.model_validate(payload)
    except (PydanticValidationError, TypeError, ValueError) as exc:
        raise MalformedCallbackError(str(exc)) from exc

    callback = envelope.body.stk_callback
    items = callback.callback_metadata.items if callback.callback_metadata else []

    try:
        metadata = PaymentMetadata.from_items(items)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedCallbackError(f"Invalid callback metadata: {exc}") from exc

    return PaymentResult(
        checkout_request_id=callback.checkout_request_id,
        merchant_request_id=callback.merchant_request_id,
        result_code=callback.result_code,
        result_description=callback.result_desc,
        metadata=metadata,
    )


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
