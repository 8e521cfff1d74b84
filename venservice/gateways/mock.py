"""Mock submission gateway for development and demos."""

import asyncio
from collections.abc import Callable

from venservice.config import settings
from venservice.gateways.base import (
    GatewayType,
    SubmissionGateway,
    SubmissionResult,
    build_submission_payload,
)
from venservice.schemas.reservation import ReservationDraft
from venservice.utils.booking_number import make_confirmation_id_factory


class MockSubmissionGateway(SubmissionGateway):
    """Accepts every draft after a simulated network delay.

    ``fail_with`` turns every submission into a failure carrying that
    message, for exercising the retry path.
    """

    def __init__(
        self,
        delay_seconds: float | None = None,
        id_factory: Callable[[], str] | None = None,
        fail_with: str | None = None,
    ) -> None:
        self.delay_seconds = settings.mock_gateway_delay_seconds if delay_seconds is None else delay_seconds
        self.id_factory = id_factory or make_confirmation_id_factory(prefix=settings.confirmation_prefix)
        self.fail_with = fail_with
        self.submitted: list[dict] = []

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MOCK

    async def submit(self, draft: ReservationDraft) -> SubmissionResult:
        """Record the payload and confirm (or fail) after the delay."""
        payload = build_submission_payload(draft)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        self.submitted.append(payload)

        if self.fail_with:
            return SubmissionResult(success=False, error_message=self.fail_with, raw_response=payload)

        return SubmissionResult(
            success=True,
            confirmation_id=self.id_factory(),
            raw_response={"status": "confirmed", "booked_via": "online"},
        )
