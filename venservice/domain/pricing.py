"""Reservation pricing.

- subtotal = base fare x max(unit count, 1)
- booking fee = 5% of subtotal, rounded half-up to the paisa
- total = subtotal + fee

Two fee policies have been used on the platform. CARD_ONLY (fee on card
payments only) is the one in force; ALL_METHODS (fee on every payment) is
kept so a deployment can opt into it explicitly.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from venservice.schemas.payment import PaymentMethod
from venservice.schemas.reservation import PriceBreakdown, ReservationDraft

BOOKING_FEE_PERCENT = Decimal("5.00")


class FeePolicy(str, Enum):
    """Which payment methods attract the booking fee."""

    CARD_ONLY = "card_only"
    ALL_METHODS = "all_methods"


DEFAULT_FEE_POLICY = FeePolicy.CARD_ONLY


def fee_applies(method: str | PaymentMethod | None, policy: FeePolicy = DEFAULT_FEE_POLICY) -> bool:
    """Whether the booking fee is charged for a payment method.

    No method chosen yet means no fee under either policy.
    """
    if method is None:
        return False
    if isinstance(method, str):
        try:
            method = PaymentMethod(method)
        except ValueError:
            return False

    if policy == FeePolicy.ALL_METHODS:
        return True
    return method == PaymentMethod.CARD


def calculate_fee(subtotal: int, method: str | PaymentMethod | None, policy: FeePolicy = DEFAULT_FEE_POLICY) -> int:
    """Calculate the booking fee in smallest currency unit.

    Args:
        subtotal: Fare total in paisa
        method: Payment method (None when not chosen yet)
        policy: Fee policy in force

    Returns:
        int: Fee in paisa
    """
    if not fee_applies(method, policy):
        return 0
    fee = (Decimal(subtotal) * BOOKING_FEE_PERCENT / Decimal("100")).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(fee)


def compute_total(
    base_price: int,
    unit_count: int,
    method: str | PaymentMethod | None = None,
    policy: FeePolicy = DEFAULT_FEE_POLICY,
) -> PriceBreakdown:
    """Compute subtotal, fee and total for a reservation.

    Args:
        base_price: Fare per unit in paisa
        unit_count: Seats (or rental days); floored at 1 for the multiplier
        method: Payment method
        policy: Fee policy in force

    Returns:
        PriceBreakdown: subtotal, fee and total in paisa
    """
    subtotal = base_price * max(unit_count, 1)
    fee = calculate_fee(subtotal, method, policy)
    return PriceBreakdown(subtotal=subtotal, fee=fee, total=subtotal + fee)


def price_draft(draft: ReservationDraft, policy: FeePolicy = DEFAULT_FEE_POLICY) -> PriceBreakdown:
    """Price a draft from its own route fare, units and payment method."""
    base_price = draft.selected_route.base_price if draft.selected_route else 0
    return compute_total(base_price, draft.unit_count, draft.payment_method, policy)
