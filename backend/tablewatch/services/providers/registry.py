"""
Registry of search adapters and availability providers.

Lifecycle: build_default_registry() is called once in the app lifespan, stored on
app.state.registry and passed by reference to the AggregationEngine and the
MonitorScheduler. close() runs on shutdown. Tests build their own registry.
"""
import logging

from tablewatch.config import Settings
from tablewatch.services.providers.base import AvailabilityProvider, ReservationAdapter

logger = logging.getLogger(__name__)

FALLBACK_PROVIDER_ID = "deeplink"


class ProviderRegistry:
    def __init__(self) -> None:
        self._adapters: dict[str, ReservationAdapter] = {}
        self._providers: dict[str, AvailabilityProvider] = {}

    def register_adapter(self, adapter: ReservationAdapter) -> None:
        """Register a search adapter (e.g. 'OpenTable', 'Resy')."""
        self._adapters[adapter.platform_name] = adapter
        logger.info("Registered search adapter: %s", adapter.platform_name)

    def register_provider(self, provider: AvailabilityProvider) -> None:
        """Register an availability provider (e.g. 'deeplink', 'resy')."""
        self._providers[provider.provider_id] = provider
        logger.info("Registered availability provider: %s", provider.provider_id)

    def get_provider(self, name: str) -> AvailabilityProvider:
        """Get provider by id. Raises KeyError if unknown."""
        if name not in self._providers:
            raise KeyError(f"Unknown provider: {name}. Available: {list(self._providers.keys())}")
        return self._providers[name]

    def list_providers(self) -> list[str]:
        return list(self._providers.keys())

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def enabled_adapters(self) -> list[ReservationAdapter]:
        return [a for a in self._adapters.values() if a.is_enabled()]

    def enabled_providers(self) -> list[AvailabilityProvider]:
        return [p for p in self._providers.values() if p.is_enabled()]

    def monitoring_providers(self, priority: list[str] | None = None) -> list[AvailabilityProvider]:
        """
        Enabled providers that can confirm real inventory, in check order.
        Ids named in priority come first (in that order); the rest follow in registration order.
        The deeplink fallback never qualifies: it can't return verified slots.
        """
        candidates = [p for p in self.enabled_providers() if p.verifies_inventory]
        rank = {name: i for i, name in enumerate(priority or [])}
        return sorted(candidates, key=lambda p: rank.get(p.provider_id, len(rank)))

    def booking_fallback(self) -> AvailabilityProvider | None:
        """The always-on hand-off provider (deeplink), if registered."""
        return self._providers.get(FALLBACK_PROVIDER_ID)

    def close(self) -> None:
        self._adapters.clear()
        self._providers.clear()
        logger.info("Provider registry closed")


def build_default_registry(settings: Settings) -> ProviderRegistry:
    from tablewatch.services.providers.deeplink_provider import DeeplinkProvider
    from tablewatch.services.providers.google_reserve_adapter import GoogleReserveAdapter
    from tablewatch.services.providers.opentable_adapter import OpenTableAdapter, SearchArea
    from tablewatch.services.providers.opentable_partner_provider import OpentablePartnerProvider
    from tablewatch.services.providers.resy_adapter import ResyAdapter
    from tablewatch.services.providers.resy_provider import ResyProvider
    from tablewatch.services.providers.yelp_adapter import YelpAdapter
    from tablewatch.services.providers.yelp_reservations_provider import YelpReservationsProvider
    from tablewatch.services.resy import ResyClient, ResyConfig

    zone = settings.search_zone
    resy_client = ResyClient(ResyConfig(api_key=settings.resy_api_key, auth_token=settings.resy_auth_token))
    area = SearchArea(
        latitude=settings.search_latitude,
        longitude=settings.search_longitude,
        metro_id=settings.opentable_metro_id,
        time_zone=zone,
    )

    registry = ProviderRegistry()
    registry.register_adapter(OpenTableAdapter(area))
    registry.register_adapter(ResyAdapter(resy_client, zone))
    registry.register_adapter(YelpAdapter(settings.yelp_api_key, zone))
    registry.register_adapter(GoogleReserveAdapter(settings.google_maps_api_key))

    registry.register_provider(DeeplinkProvider())
    registry.register_provider(ResyProvider(resy_client, zone))
    registry.register_provider(
        YelpReservationsProvider(settings.yelp_api_key, zone, enabled=settings.yelp_reservations_enabled)
    )
    registry.register_provider(
        OpentablePartnerProvider(settings.opentable_partner_api_key, enabled=settings.opentable_partner_enabled)
    )
    return registry
