"""Redfin bulk search through RapidAPI: one call per region and status."""

import httpx

from ..config import Settings
from ..ratelimit import RateLimiter
from ..schemas import RegionQuery
from .base import SourceAdapter, SourceError
from .http import new_client

SEARCH_PATHS = {
    "sale": "/properties/search-sale",
    "sold": "/properties/search-sold",
}


class RedfinSearchAdapter(SourceAdapter):
    source = "redfin_api"

    def __init__(
        self,
        api_key: str,
        client: httpx.Client,
        limiter: RateLimiter | None = None,
        host: str = "redfin-com-data.p.rapidapi.com",
    ):
        super().__init__(client, limiter)
        if not api_key:
            raise ValueError("RAPIDAPI_KEY is required")
        self.api_key = api_key
        self.host = host

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client | None = None) -> "RedfinSearchAdapter":
        limiter = RateLimiter("redfin_api", quota=settings.redfin_quota, min_interval=settings.redfin_delay)
        return cls(
            settings.rapidapi_key,
            client or new_client(settings.http_timeout),
            limiter,
            host=settings.rapidapi_host,
        )

    def _fetch(self, query: RegionQuery) -> list[dict]:
        response = self.client.get(
            f"https://{self.host}{SEARCH_PATHS[query.status]}",
            params={"regionId": query.region.api_region_id, "limit": query.limit},
            headers={"x-rapidapi-key": self.api_key, "x-rapidapi-host": self.host},
        )
        if response.status_code == 404:
            return []
        response.raise_for_status()

        body = response.json()
        if not isinstance(body, dict):
            raise SourceError(f"unexpected search body: {type(body).__name__}")
        data = body.get("data") or []
        if isinstance(data, dict):
            data = data.get("homes") or []

        homes = []
        for item in data:
            if not isinstance(item, dict):
                continue
            item["_region"] = query.region.name
            if query.status == "sold":
                item["_query_status"] = "sold"
            homes.append(item)
        return homes
