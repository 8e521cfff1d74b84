"""HTTP submission gateway for the booking backend."""

import logging

import httpx

from venservice.config import settings
from venservice.gateways.base import (
    GatewayType,
    SubmissionGateway,
    SubmissionResult,
    build_submission_payload,
)
from venservice.schemas.reservation import ReservationDraft

logger = logging.getLogger(__name__)


class HttpSubmissionGateway(SubmissionGateway):
    """POSTs drafts to the booking API.

    Transport errors and non-2xx answers come back as failed results with a
    message fit for the passenger; nothing is retried here.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url or settings.booking_api_url
        self.timeout = timeout or settings.gateway_timeout_seconds
        self._http_client = client

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.HTTP

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()

    async def submit(self, draft: ReservationDraft) -> SubmissionResult:
        """Submit the draft and read the confirmation number from the reply."""
        payload = build_submission_payload(draft)
        try:
            response = await self.http_client.post(self.base_url, json=payload)
        except httpx.TimeoutException:
            logger.warning(f"Booking API timed out after {self.timeout}s")
            return SubmissionResult(
                success=False,
                error_message="The booking service took too long to respond. Please try again.",
            )
        except httpx.HTTPError as e:
            logger.warning(f"Booking API request failed: {e}")
            return SubmissionResult(
                success=False,
                error_message="Could not reach the booking service. Please try again.",
            )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = body.get("message") or body.get("detail") or f"Booking failed ({response.status_code})"
            return SubmissionResult(success=False, error_message=str(message), raw_response=body)

        confirmation_id = body.get("confirmation_id") or body.get("id")
        if not confirmation_id:
            logger.error(f"Booking API answered {response.status_code} without a confirmation id")
            return SubmissionResult(
                success=False,
                error_message="The booking service did not return a confirmation number.",
                raw_response=body,
            )

        return SubmissionResult(success=True, confirmation_id=str(confirmation_id), raw_response=body)
