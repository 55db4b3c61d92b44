"""
Multi-platform search: fan the intent out to every enabled adapter, merge duplicates,
filter to the intent, rank and return the top results.

Fan-out uses a soft per-adapter deadline: a slow adapter's result is discarded when the
deadline passes, but its task is not cancelled (it finishes in the background and its
result is dropped). Adapters are fail-soft, and any exception that still escapes one is
absorbed here, so a single bad platform never fails the batch.
"""
import asyncio
import dataclasses
import logging

from tablewatch.core.constants import (
    SCORE_CUISINE_EXACT,
    SCORE_CUISINE_FUZZY,
    SCORE_LOCATION_MATCH,
    SCORE_LOCATION_PARTIAL,
    SCORE_PER_VIBE,
    SCORE_RATING_MULTIPLIER,
    SCORE_TIME_PROXIMITY_MAX,
    SEARCH_RESULT_LIMIT,
    TIME_WINDOW_MINUTES,
)
from tablewatch.services.providers.base import ReservationAdapter
from tablewatch.services.providers.registry import ProviderRegistry
from tablewatch.services.providers.types import QueryIntent, RestaurantOption

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_TIMEOUT_SECONDS = 10.0
TIME_WINDOW_SECONDS = TIME_WINDOW_MINUTES * 60

# Strong refs to tasks that lost the deadline so they are not garbage collected mid-flight
_late_tasks: set[asyncio.Task] = set()


def dedupe_key(option: RestaurantOption) -> str:
    """Normalized identity: lowercase name + '-' + lowercase location."""
    return f"{option.name.strip().lower()}-{option.location.strip().lower()}"


def _substring_either_way(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def _time_delta_seconds(option: RestaurantOption, intent: QueryIntent) -> float:
    return abs((option.date_time - intent.date_time).total_seconds())


def merge_into(existing: RestaurantOption, other: RestaurantOption) -> None:
    """
    Merge a duplicate into the record already seen (same dedupe key).
    Keeps the higher rating, the first booking link seen, and the union of platforms.
    """
    if dedupe_key(existing) != dedupe_key(other):
        raise ValueError(f"Cannot merge {other.name!r} into {existing.name!r}: keys differ")
    if other.rating is not None and (existing.rating is None or other.rating > existing.rating):
        existing.rating = other.rating
    if other.booking_link and not existing.booking_link:
        existing.booking_link = other.booking_link
    platforms = [p.strip() for p in existing.platform.split(",")]
    for p in other.platform.split(","):
        p = p.strip()
        if p and p not in platforms:
            platforms.append(p)
    existing.platform = ", ".join(platforms)


def deduplicate(options: list[RestaurantOption]) -> list[RestaurantOption]:
    """Group by dedupe key; the first arrival of each key is copied and later ones merged into it."""
    seen: dict[str, RestaurantOption] = {}
    for option in options:
        key = dedupe_key(option)
        existing = seen.get(key)
        if existing is None:
            seen[key] = dataclasses.replace(option)
        else:
            merge_into(existing, option)
    return list(seen.values())


def matches_intent(option: RestaurantOption, intent: QueryIntent) -> bool:
    """Cuisine must fuzzy-match when both sides define it; time must be within ±30 min (inclusive)."""
    if intent.cuisine and option.cuisine and not _substring_either_way(option.cuisine, intent.cuisine):
        return False
    return _time_delta_seconds(option, intent) <= TIME_WINDOW_SECONDS


def filter_by_intent(options: list[RestaurantOption], intent: QueryIntent) -> list[RestaurantOption]:
    return [o for o in options if matches_intent(o, intent)]


def score_option(option: RestaurantOption, intent: QueryIntent) -> float:
    score = 0.0

    # Location: full credit on a substring match either way, partial credit otherwise
    if _substring_either_way(option.location, intent.location):
        score += SCORE_LOCATION_MATCH
    else:
        score += SCORE_LOCATION_PARTIAL

    if option.rating:
        score += option.rating * SCORE_RATING_MULTIPLIER  # 4.5 stars = 36 points

    if intent.cuisine and option.cuisine:
        if option.cuisine.lower() == intent.cuisine.lower():
            score += SCORE_CUISINE_EXACT
        elif _substring_either_way(option.cuisine, intent.cuisine):
            score += SCORE_CUISINE_FUZZY

    if intent.vibe and option.vibe_tags:
        tags = [t.lower() for t in option.vibe_tags]
        matching = [v for v in intent.vibe if any(v.lower() in t for t in tags)]
        score += len(matching) * SCORE_PER_VIBE

    # Linear decay from 10 points at the requested time to 0 at 30 minutes away
    delta = _time_delta_seconds(option, intent)
    if delta < TIME_WINDOW_SECONDS:
        score += SCORE_TIME_PROXIMITY_MAX - delta / (TIME_WINDOW_SECONDS / SCORE_TIME_PROXIMITY_MAX)
    return score


def rank(options: list[RestaurantOption], intent: QueryIntent) -> list[tuple[float, RestaurantOption]]:
    """Score in a side list and sort descending; ties keep arrival order (stable sort)."""
    scored = [(score_option(o, intent), o) for o in options]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return scored


class AggregationEngine:
    """Stateless between calls; holds only the registry and limits."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        adapter_timeout: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS,
        result_limit: int = SEARCH_RESULT_LIMIT,
    ) -> None:
        self._registry = registry
        self._adapter_timeout = adapter_timeout
        self._result_limit = result_limit

    async def search_reservations(self, intent: QueryIntent) -> list[RestaurantOption]:
        candidates = await self._fan_out(intent)
        merged = deduplicate(candidates)
        filtered = filter_by_intent(merged, intent)
        ranked = rank(filtered, intent)
        logger.info(
            "Search %s @ %s: %s candidates, %s unique, %s after filter",
            intent.location,
            intent.date_time.isoformat(),
            len(candidates),
            len(merged),
            len(filtered),
        )
        return [option for _score, option in ranked[: self._result_limit]]

    async def _fan_out(self, intent: QueryIntent) -> list[RestaurantOption]:
        """Run every enabled adapter concurrently; flatten results in completion order."""
        adapters = self._registry.enabled_adapters()
        if not adapters:
            return []
        arrivals: list[asyncio.Task] = []
        tasks: dict[asyncio.Task, str] = {}
        for adapter in adapters:
            task = asyncio.create_task(_call_adapter(adapter, intent))
            # Registered before asyncio.wait's own callback, so arrivals is in completion order
            task.add_done_callback(arrivals.append)
            tasks[task] = adapter.platform_name

        done, pending = await asyncio.wait(tasks.keys(), timeout=self._adapter_timeout)

        for task in pending:
            logger.warning(
                "[%s] no response within %.1fs; result discarded", tasks[task], self._adapter_timeout
            )
            _late_tasks.add(task)
            task.add_done_callback(_late_tasks.discard)

        results: list[RestaurantOption] = []
        for task in arrivals:
            if task in done:
                results.extend(task.result())
        return results


async def _call_adapter(adapter: ReservationAdapter, intent: QueryIntent) -> list[RestaurantOption]:
    try:
        results = await adapter.search_availability(intent)
    except Exception as e:
        logger.warning("[%s] adapter raised despite fail-soft contract: %s", adapter.platform_name, e, exc_info=True)
        return []
    return list(results or [])
