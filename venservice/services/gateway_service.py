"""Submission gateway service.

Picks and caches the submission gateway adapter named in settings.
"""

import logging

from venservice.config import settings
from venservice.gateways.base import GatewayType, SubmissionGateway
from venservice.gateways.http_gateway import HttpSubmissionGateway
from venservice.gateways.mock import MockSubmissionGateway

logger = logging.getLogger(__name__)


class GatewayService:
    """Service for managing submission gateway instances."""

    def __init__(self, default_type: str | GatewayType | None = None):
        self._gateways: dict[GatewayType, SubmissionGateway] = {}
        self._default_type = default_type or settings.submission_gateway

    def _get_gateway(self, gateway_type: str | GatewayType | None = None) -> SubmissionGateway:
        """Get or create gateway instance."""
        gateway_type = gateway_type or self._default_type
        if isinstance(gateway_type, str):
            try:
                gateway_type = GatewayType(gateway_type)
            except ValueError:
                logger.warning(f"Unknown submission gateway '{gateway_type}', using mock")
                gateway_type = GatewayType.MOCK

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.HTTP:
                self._gateways[gateway_type] = HttpSubmissionGateway()
            else:
                self._gateways[gateway_type] = MockSubmissionGateway()

        return self._gateways[gateway_type]

    @property
    def gateway(self) -> SubmissionGateway:
        """The default gateway."""
        return self._get_gateway()


gateway_service = GatewayService()
