"""Payment validation dispatcher.

Routes a payment method to its rule set and returns a field-error map for
the client. Never raises: every outcome is a PaymentValidationResult.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from venservice.schemas.payment import (
    BankTransferPayment,
    CardPayment,
    CashPayment,
    MobileWalletPayment,
    PaymentDetails,
    PaymentMethod,
)


@dataclass(frozen=True)
class PaymentValidationResult:
    """Outcome of validating payment details."""

    success: bool
    data: PaymentDetails | None = None
    errors: dict[str, str] = field(default_factory=dict)


def _collect_errors(exc: PydanticValidationError) -> dict[str, str]:
    """Keep the first message per field, without pydantic's prefixes."""
    errors: dict[str, str] = {}
    for issue in exc.errors():
        name = ".".join(str(part) for part in issue["loc"]) or "payment"
        if name in errors:
            continue
        if issue["type"] == "value_error":
            errors[name] = str(issue["ctx"]["error"])
        else:
            errors[name] = issue["msg"]
    return errors


def _validate_model(
    model: type[BaseModel],
    method: PaymentMethod,
    raw_fields: Mapping[str, Any],
    now: datetime,
) -> PaymentValidationResult:
    payload = {**raw_fields, "method": method.value}
    try:
        payment = model.model_validate(payload, context={"now": now})
    except PydanticValidationError as exc:
        return PaymentValidationResult(success=False, errors=_collect_errors(exc))
    return PaymentValidationResult(success=True, data=payment)


def _validate_card(method: PaymentMethod, raw_fields: Mapping[str, Any], now: datetime) -> PaymentValidationResult:
    return _validate_model(CardPayment, method, raw_fields, now)


def _validate_mobile_wallet(
    method: PaymentMethod, raw_fields: Mapping[str, Any], now: datetime
) -> PaymentValidationResult:
    return _validate_model(MobileWalletPayment, method, raw_fields, now)


def _validate_bank_transfer(
    method: PaymentMethod, raw_fields: Mapping[str, Any], now: datetime
) -> PaymentValidationResult:
    return _validate_model(BankTransferPayment, method, raw_fields, now)


def _validate_cash(method: PaymentMethod, raw_fields: Mapping[str, Any], now: datetime) -> PaymentValidationResult:
    # Cash at the counter: supplied fields are ignored.
    return PaymentValidationResult(success=True, data=CashPayment())


PAYMENT_VALIDATORS: dict[
    PaymentMethod, Callable[[PaymentMethod, Mapping[str, Any], datetime], PaymentValidationResult]
] = {
    PaymentMethod.CARD: _validate_card,
    PaymentMethod.EASYPAISA: _validate_mobile_wallet,
    PaymentMethod.JAZZCASH: _validate_mobile_wallet,
    PaymentMethod.BANK_TRANSFER: _validate_bank_transfer,
    PaymentMethod.CASH: _validate_cash,
}


def validate_payment_details(
    method: str | PaymentMethod | None,
    raw_fields: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> PaymentValidationResult:
    """Validate payment details for a method.

    Args:
        method: Payment method tag
        raw_fields: Fields as entered by the client
        now: Reference time for card expiry (defaults to current UTC time)

    Returns:
        PaymentValidationResult with typed details or a field-error map
    """
    if isinstance(method, str):
        try:
            method = PaymentMethod(method)
        except ValueError:
            return PaymentValidationResult(
                success=False, errors={"method": f"Unsupported payment method: {method}"}
            )
    if method is None:
        return PaymentValidationResult(success=False, errors={"method": "Payment method is required"})

    validator = PAYMENT_VALIDATORS[method]
    return validator(method, raw_fields or {}, now or datetime.now(UTC))


def revalidate_payment(payment: PaymentDetails, now: datetime | None = None) -> PaymentValidationResult:
    """Run stored payment details through their method's rules again."""
    fields = payment.model_dump(exclude={"method"})
    return validate_payment_details(payment.method, fields, now)
