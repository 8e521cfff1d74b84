"""Base submission gateway interface.

A gateway accepts a finished reservation draft and answers with a
confirmation number or a human-readable failure. Adapters only talk to the
booking backend; reservation rules stay in the state machine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from venservice.config import settings
from venservice.schemas.reservation import ReservationDraft


class GatewayType(str, Enum):
    """Supported submission gateways."""

    MOCK = "mock"
    HTTP = "http"


@dataclass
class SubmissionResult:
    """Result of a submission."""

    success: bool
    confirmation_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


def build_submission_payload(draft: ReservationDraft) -> dict[str, Any]:
    """Serialize a draft for the booking backend.

    JSON mode masks the card number and CVV.
    """
    data = draft.model_dump(mode="json")
    return {
        "route_id": draft.selected_route.id if draft.selected_route else None,
        "schedule_id": draft.selected_schedule.id if draft.selected_schedule else None,
        "seat_ids": draft.seat_ids,
        "date_range": data["date_range"],
        "passenger": data["passenger"],
        "payment": data["payment"],
        "total_amount": draft.total_amount,
        "currency": settings.currency,
    }


class SubmissionGateway(ABC):
    """Abstract base class for submission gateways."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""
        pass

    @abstractmethod
    async def submit(self, draft: ReservationDraft) -> SubmissionResult:
        """Submit a finished draft.

        Args:
            draft: Draft that passed every step guard

        Returns:
            SubmissionResult with the confirmation number or an error message
        """
        pass

    async def close(self) -> None:
        """Release any connections held by the gateway."""
        return None
