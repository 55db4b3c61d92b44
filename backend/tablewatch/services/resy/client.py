"""Resy API client: lowest level, sends request only. No validation."""
from typing import Any

import httpx

from tablewatch.services.resy.config import ResyConfig, get_venue_search_bounding_box

SEARCH_PATH = "/3/venuesearch/search"


class ResyClient:
    """Resy venue search client (sync for scheduler threads, async for the search fan-out)."""

    def __init__(self, config: ResyConfig | None = None) -> None:
        self._config = config or ResyConfig()

    def is_configured(self) -> bool:
        return self._config.is_configured()

    def _credentials_error(self) -> dict[str, Any]:
        return {"error": "Resy credentials not configured. Add RESY_API_KEY and RESY_AUTH_TOKEN to .env."}

    @staticmethod
    def _decode(r: httpx.Response) -> dict[str, Any]:
        if not r.is_success:
            return {"error": f"Resy API error: {r.status_code}", "detail": (r.text[:500] if r.text else None)}
        try:
            return r.json() if r.content else {}
        except Exception:
            return {"_raw_body": (r.text[:2000] if r.text else "")}

    def _post(self, path: str, json_body: dict[str, Any], *, timeout: float = 20.0) -> dict[str, Any]:
        if not self._config.is_configured():
            return self._credentials_error()
        url = f"{self._config.base_url}{path}"
        try:
            with httpx.Client(timeout=timeout) as c:
                r = c.post(url, json=json_body, headers=self._config.headers())
        except Exception as e:
            return {"error": str(e)}
        return self._decode(r)

    async def _apost(self, path: str, json_body: dict[str, Any], *, timeout: float = 20.0) -> dict[str, Any]:
        if not self._config.is_configured():
            return self._credentials_error()
        url = f"{self._config.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=timeout) as c:
                r = await c.post(url, json=json_body, headers=self._config.headers())
        except Exception as e:
            return {"error": str(e)}
        return self._decode(r)

    @staticmethod
    def _search_payload(
        day: str,
        party_size: int,
        *,
        query: str,
        page: int,
        per_page: int,
        time_filter: str | None,
    ) -> dict[str, Any]:
        slot_filter: dict[str, Any] = {"day": day, "party_size": party_size}
        if time_filter:
            slot_filter["time_filter"] = time_filter
        return {
            "availability": True,
            "page": page,
            "per_page": per_page,
            "slot_filter": slot_filter,
            "types": ["venue"],
            "order_by": "availability",
            "geo": {"bounding_box": get_venue_search_bounding_box()},
            "query": query,
        }

    def search_with_availability(
        self,
        day: str,
        party_size: int = 2,
        *,
        query: str = "",
        per_page: int = 20,
        max_pages: int = 1,
        time_filter: str | None = None,
    ) -> dict[str, Any]:
        """POST venue search; follows total_pages from the API, capped at max_pages. Returns merged hits."""
        all_hits: list[dict[str, Any]] = []
        page_num = 1
        total_pages = 1
        while page_num <= total_pages and page_num <= max_pages:
            payload = self._search_payload(
                day, party_size, query=query, page=page_num, per_page=per_page, time_filter=time_filter
            )
            raw = self._post(SEARCH_PATH, payload)
            if raw.get("error"):
                if all_hits:
                    return {"search": {"hits": all_hits}}
                return raw
            search = raw.get("search") or {}
            hits = search.get("hits") or []
            all_hits.extend(hits)
            if page_num == 1:
                # API may return total_pages at top level, in search, or in search.pagination
                pagination = search.get("pagination") or {}
                api_total = raw.get("total_pages") or search.get("total_pages") or pagination.get("total_pages")
                total_pages = min(int(api_total), max_pages) if api_total is not None else max_pages
            if page_num >= total_pages:
                break
            page_num += 1
        return {"search": {"hits": all_hits}}

    async def search_with_availability_async(
        self,
        day: str,
        party_size: int = 2,
        *,
        query: str = "",
        per_page: int = 50,
        time_filter: str | None = None,
    ) -> dict[str, Any]:
        """Single-page async search for the request path; does not block the event loop."""
        payload = self._search_payload(
            day, party_size, query=query, page=1, per_page=per_page, time_filter=time_filter
        )
        return await self._apost(SEARCH_PATH, payload)
