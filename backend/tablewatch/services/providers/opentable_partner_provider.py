"""OpenTable Partner provider. Scaffold only: needs partner API credentials, so it returns no slots."""
import logging

from tablewatch.services.providers.types import (
    AvailabilityRequest,
    AvailabilitySlot,
    BookingRequest,
    ProviderResult,
)

logger = logging.getLogger(__name__)


class OpentablePartnerProvider:
    provider_id = "opentable_partner"
    verifies_inventory = True

    def __init__(self, api_key: str = "", *, enabled: bool = False) -> None:
        self._api_key = (api_key or "").strip()
        self._enabled = enabled

    def is_enabled(self) -> bool:
        return self._enabled

    def get_availability(self, request: AvailabilityRequest) -> list[AvailabilitySlot]:
        if not self.is_enabled():
            return []
        # TODO: call the partner availability endpoint once partner credentials are issued
        logger.debug("OpenTable partner availability not configured; place_id=%s", request.place_id)
        return []

    def book(self, request: BookingRequest) -> ProviderResult:
        if not self.is_enabled():
            return ProviderResult(success=False, error="OpenTable partner provider not enabled")
        return ProviderResult(
            success=False, error="OpenTable Partner API not configured - requires partner credentials"
        )
