"""Field validation utilities.

Pure predicates shared by the passenger guard and the payment dispatcher.
The patterns are part of the booking contract with the payment partners and
must not be tuned.
"""

import re
from datetime import datetime

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Passenger contact number: +92XXXXXXXXXX or 0XXXXXXXXXX
PASSENGER_PHONE_REGEX = re.compile(r"^(\+92|0)[0-9]{10}$")

# Wallet numbers: 03XX-XXXXXXX, +923XXXXXXXXX or 00923XXXXXXXXX
MOBILE_WALLET_REGEX = re.compile(r"^(\+92|0092|0)?(3[0-9]{2})[0-9]{7}$")

CARD_NUMBER_REGEX = re.compile(r"^[0-9]{13,19}$")
CARD_HOLDER_REGEX = re.compile(r"^[a-zA-Z\s'-]+$")
CARD_EXPIRY_REGEX = re.compile(r"^(0[1-9]|1[0-2])/([0-9]{2})$")
CVV_REGEX = re.compile(r"^[0-9]{3,4}$")

# 2-letter country + 2 check digits + up to 30 alphanumeric
IBAN_REGEX = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{1,30}$")

# PK + 2 check digits + 4-letter bank code + 16 digits
PK_IBAN_REGEX = re.compile(r"^PK[0-9]{2}[A-Z]{4}[0-9]{16}$")

CNIC_REGEX = re.compile(r"^[0-9]{5}-[0-9]{7}-[0-9]$")
CNIC_DIGITS_REGEX = re.compile(r"^[0-9]{13}$")

HOME_COUNTRY_CODE = "PK"


def validate_email(email: str) -> bool:
    """Validate e-mail address syntax."""
    return bool(EMAIL_REGEX.match(email.strip()))


def validate_pakistani_phone(phone: str) -> bool:
    """Validate a passenger contact number.

    Accepted formats:
    - +923001234567 (international)
    - 03001234567 (local)
    - 0300 1234567 (local with spaces)

    Args:
        phone: Phone number to validate

    Returns:
        bool: True if valid Pakistani phone format
    """
    cleaned = re.sub(r"\s", "", phone)
    return bool(PASSENGER_PHONE_REGEX.match(cleaned))


def clean_mobile_number(phone: str) -> str:
    """Strip whitespace and hyphens from a wallet number."""
    return re.sub(r"[\s\-]", "", phone)


def validate_mobile_wallet_number(phone: str) -> bool:
    """Validate an EasyPaisa/JazzCash account number."""
    return bool(MOBILE_WALLET_REGEX.match(clean_mobile_number(phone)))


def normalize_phone(phone: str) -> str:
    """Normalize phone number to international format.

    Args:
        phone: Phone number in any format

    Returns:
        str: Phone number in +92XXXXXXXXXX format
    """
    # Remove non-digits except +
    cleaned = re.sub(r"[^0-9+]", "", phone)

    if cleaned.startswith("+92"):
        return cleaned

    if cleaned.startswith("0092"):
        return "+" + cleaned[2:]

    # Local format starting with 0
    if cleaned.startswith("0"):
        return "+92" + cleaned[1:]

    # Just digits starting with 3
    if cleaned.startswith("3") and len(cleaned) == 10:
        return "+92" + cleaned

    return phone  # Return as-is if can't normalize


def validate_cnic(cnic: str) -> bool:
    """Validate Pakistani CNIC number.

    CNIC format: XXXXX-XXXXXXX-X (13 digits with dashes)
    or: XXXXXXXXXXXXX (13 digits without dashes)
    """
    stripped = cnic.strip()
    if "-" in stripped and not CNIC_REGEX.match(stripped):
        return False

    cleaned = stripped.replace("-", "")
    return bool(CNIC_DIGITS_REGEX.match(cleaned))


def luhn_checksum_valid(number: str) -> bool:
    """Luhn check for card numbers.

    Every second digit from the right is doubled (minus 9 when above 9) and
    the total must be divisible by 10.
    """
    digits = [int(ch) for ch in re.findall(r"[0-9]", number)]
    if not digits:
        return False

    total = 0
    for position, digit in enumerate(reversed(digits)):
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def clean_card_number(card_number: str) -> str:
    """Remove whitespace from a card number."""
    return re.sub(r"\s", "", card_number)


def validate_card_number(card_number: str) -> bool:
    """Validate card number length (13-19 digits) and Luhn checksum."""
    cleaned = clean_card_number(card_number)
    return bool(CARD_NUMBER_REGEX.match(cleaned)) and luhn_checksum_valid(cleaned)


def is_card_expired(expiry: str, now: datetime) -> bool:
    """Check whether an MM/YY expiry is no longer usable.

    The card counts as valid only while the first day of its named month is
    strictly after ``now``. Malformed input is treated as expired.
    """
    match = CARD_EXPIRY_REGEX.match(expiry.strip())
    if not match:
        return True

    month, year = int(match.group(1)), 2000 + int(match.group(2))
    month_start = datetime(year, month, 1, tzinfo=now.tzinfo)
    return not month_start > now


def clean_iban(iban: str) -> str:
    """Remove spaces and upper-case an IBAN."""
    return re.sub(r"\s", "", iban).upper()


def validate_iban(iban: str) -> bool:
    """Validate IBAN structure, strictly for home-country accounts.

    Args:
        iban: IBAN to validate

    Returns:
        bool: True if the general shape matches and, for PK accounts,
        the national format matches too
    """
    cleaned = clean_iban(iban)
    if not IBAN_REGEX.match(cleaned):
        return False

    if cleaned.startswith(HOME_COUNTRY_CODE):
        return bool(PK_IBAN_REGEX.match(cleaned))

    return True


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """Mask sensitive data showing only last few characters.

    Args:
        data: Sensitive data to mask
        visible_chars: Number of characters to show at end

    Returns:
        str: Masked string like '********7890'
    """
    if len(data) <= visible_chars:
        return "*" * len(data)

    masked_length = len(data) - visible_chars
    return "*" * masked_length + data[-visible_chars:]
