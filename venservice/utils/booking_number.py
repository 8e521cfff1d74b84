"""Confirmation number and session id generation utilities."""

import secrets
import string
from collections.abc import Callable
from datetime import UTC, datetime

BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"

    chars = []
    while value:
        value, remainder = divmod(value, 36)
        chars.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(chars))


def generate_confirmation_id(prefix: str = "VEN", now: datetime | None = None) -> str:
    """Generate a confirmation number in format PREFIX-<base36 timestamp>.

    Args:
        prefix: Operator prefix
        now: Moment of confirmation (defaults to current UTC time)

    Returns:
        str: Confirmation number like 'VEN-M7Q2K1ZC'
    """
    moment = now or datetime.now(UTC)
    millis = int(moment.timestamp() * 1000)
    return f"{prefix}-{to_base36(millis)}"


def make_confirmation_id_factory(
    prefix: str = "VEN",
    clock: Callable[[], datetime] | None = None,
) -> Callable[[], str]:
    """Build the id factory the reservation machine is constructed with.

    Ids issued within the same millisecond get the timestamp bumped so a
    session never sees the same confirmation number twice.
    """
    last_millis = 0

    def factory() -> str:
        nonlocal last_millis
        moment = clock() if clock else datetime.now(UTC)
        millis = max(int(moment.timestamp() * 1000), last_millis + 1)
        last_millis = millis
        return f"{prefix}-{to_base36(millis)}"

    return factory


def generate_session_id() -> str:
    """Generate an opaque reservation session id.

    Returns:
        str: Session id like 'rs_4fQ9x0b2...'
    """
    return f"rs_{secrets.token_urlsafe(16)}"
