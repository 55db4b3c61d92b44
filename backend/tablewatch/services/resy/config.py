"""Resy credentials and venue-search area. Values come from Settings; env is the fallback for scripts."""
import os
from dataclasses import dataclass, field

RESY_API_BASE = "https://api.resy.com"

# Venue search takes a bounding box, not a radius: [south, west, north, east].
# Default is the city of Chicago; RESY_SEARCH_BOX="s,w,n,e" overrides it.
DEFAULT_SEARCH_BOX: tuple[float, float, float, float] = (41.644, -87.940, 42.023, -87.524)


def get_venue_search_bounding_box() -> list[float]:
    raw = os.getenv("RESY_SEARCH_BOX", "")
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    if len(parts) == 4:
        try:
            return [float(p) for p in parts]
        except ValueError:
            pass
    return list(DEFAULT_SEARCH_BOX)


@dataclass(frozen=True)
class ResyConfig:
    api_key: str = field(default_factory=lambda: os.getenv("RESY_API_KEY", ""))
    auth_token: str = field(default_factory=lambda: os.getenv("RESY_AUTH_TOKEN", ""))
    base_url: str = RESY_API_BASE

    def __post_init__(self):
        object.__setattr__(self, "api_key", (self.api_key or os.getenv("RESY_API_KEY", "")).strip())
        object.__setattr__(self, "auth_token", (self.auth_token or os.getenv("RESY_AUTH_TOKEN", "")).strip())
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def is_configured(self) -> bool:
        """Both the public API key and a user auth token are needed for availability search."""
        return bool(self.api_key and self.auth_token)

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f'ResyAPI api_key="{self.api_key}"',
            "x-resy-auth-token": self.auth_token,
            "Origin": "https://resy.com",
            "Referer": "https://resy.com/",
            "Content-Type": "application/json",
        }
