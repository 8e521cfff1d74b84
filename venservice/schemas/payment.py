"""Payment detail schemas, one per payment method.

``PaymentDetails`` is a tagged union on ``method``. Field rules live on the
individual models; ``venservice.domain.payment_validation`` picks the model
for a method and turns pydantic errors into a field-error map.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

from venservice.utils.validators import (
    CARD_HOLDER_REGEX,
    CARD_NUMBER_REGEX,
    CVV_REGEX,
    IBAN_REGEX,
    clean_card_number,
    clean_iban,
    clean_mobile_number,
    is_card_expired,
    luhn_checksum_valid,
    mask_sensitive_data,
    normalize_phone,
    validate_iban,
    validate_mobile_wallet_number,
)


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    CARD = "card"
    EASYPAISA = "easypaisa"
    JAZZCASH = "jazzcash"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


def _as_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, int | float):
        return str(value)
    return value


class _PaymentBase(BaseModel):
    """Shared config: immutable, unknown fields ignored, missing fields validated."""

    model_config = ConfigDict(frozen=True, extra="ignore", validate_default=True)

    @model_validator(mode="before")
    @classmethod
    def coerce_blank(cls, data: Any) -> Any:
        """Missing values become "" and numbers become strings; ``method`` is left alone."""
        if not isinstance(data, dict):
            return data
        return {key: value if key == "method" else _as_text(value) for key, value in data.items()}


class CardPayment(_PaymentBase):
    """Debit/credit card details."""

    method: Literal["card"] = "card"
    card_number: str = ""
    card_holder: str = ""
    expiry: str = ""  # MM/YY
    cvv: str = ""

    @field_validator("card_number")
    @classmethod
    def validate_card_number(cls, v: str) -> str:
        cleaned = clean_card_number(v)
        if not cleaned:
            raise ValueError("Card number is required")
        if not CARD_NUMBER_REGEX.match(cleaned) or not luhn_checksum_valid(cleaned):
            raise ValueError("Invalid card number")
        return cleaned

    @field_validator("card_holder")
    @classmethod
    def validate_card_holder(cls, v: str) -> str:
        name = v.strip()
        if len(name) < 2:
            raise ValueError("Cardholder name is required")
        if len(name) > 60:
            raise ValueError("Name too long")
        if not CARD_HOLDER_REGEX.match(name):
            raise ValueError("Name contains invalid characters")
        return name

    @field_validator("expiry")
    @classmethod
    def validate_expiry(cls, v: str, info: ValidationInfo) -> str:
        expiry = v.strip()
        if not expiry:
            raise ValueError("Expiry date is required")
        now = (info.context or {}).get("now") or datetime.now(UTC)
        if is_card_expired(expiry, now):
            raise ValueError("Card is expired or invalid format (MM/YY)")
        return expiry

    @field_validator("cvv")
    @classmethod
    def validate_cvv(cls, v: str) -> str:
        if not CVV_REGEX.match(v.strip()):
            raise ValueError("CVV must be 3 or 4 digits")
        return v.strip()

    # JSON output (API responses, submission payloads) never carries the raw
    # card number or CVV.
    @field_serializer("card_number", when_used="json")
    def mask_card_number(self, v: str) -> str:
        return mask_sensitive_data(v)

    @field_serializer("cvv", when_used="json")
    def hide_cvv(self, v: str) -> str:
        return "*" * len(v)


class MobileWalletPayment(_PaymentBase):
    """EasyPaisa or JazzCash wallet details."""

    method: Literal["easypaisa", "jazzcash"]
    phone_number: str = ""
    account_title: str = ""

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        cleaned = clean_mobile_number(v)
        if not cleaned:
            raise ValueError("Phone number is required")
        if not validate_mobile_wallet_number(cleaned):
            raise ValueError("Enter a valid Pakistani mobile number (03XX-XXXXXXX)")
        return normalize_phone(cleaned)

    @field_validator("account_title")
    @classmethod
    def validate_account_title(cls, v: str) -> str:
        title = v.strip()
        if len(title) < 2:
            raise ValueError("Account title is required")
        if len(title) > 50:
            raise ValueError("Account title too long")
        return title


class BankTransferPayment(_PaymentBase):
    """Bank transfer from an IBAN account."""

    method: Literal["bank_transfer"] = "bank_transfer"
    iban: str = ""
    account_title: str = ""
    bank_name: str = ""

    @field_validator("iban")
    @classmethod
    def check_iban(cls, v: str) -> str:
        cleaned = clean_iban(v)
        if not cleaned:
            raise ValueError("IBAN is required")
        if not IBAN_REGEX.match(cleaned):
            raise ValueError("Invalid IBAN format")
        if not validate_iban(cleaned):
            raise ValueError("Invalid PK IBAN: must be PK + 2 digits + 4-letter bank code + 16 digits")
        return cleaned

    @field_validator("account_title")
    @classmethod
    def validate_account_title(cls, v: str) -> str:
        title = v.strip()
        if len(title) < 2:
            raise ValueError("Account title is required")
        if len(title) > 50:
            raise ValueError("Account title too long")
        return title

    @field_validator("bank_name")
    @classmethod
    def validate_bank_name(cls, v: str) -> str:
        name = v.strip()
        if len(name) < 2:
            raise ValueError("Bank name is required")
        if len(name) > 80:
            raise ValueError("Bank name too long")
        return name


class CashPayment(_PaymentBase):
    """Cash at a partner counter. Nothing to validate."""

    method: Literal["cash"] = "cash"


PaymentDetails = Annotated[
    Union[CardPayment, MobileWalletPayment, BankTransferPayment, CashPayment],
    Field(discriminator="method"),
]
