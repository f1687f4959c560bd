"""ATTOM property API: per-address lookup, billed per call."""

import httpx

from ..config import Settings
from ..ratelimit import RateLimiter
from ..schemas import AddressQuery
from .base import SourceAdapter, SourceError
from .http import new_client

ATTOM_BASE_URL = "https://api.gateway.attomdata.com/propertyapi/v1.0.0"

# ATTOM answers an address with no match with HTTP 400 and this status message
NO_RESULT_MESSAGE = "SuccessWithoutResult"


class AttomAdapter(SourceAdapter):
    source = "attom"

    def __init__(
        self,
        api_key: str,
        client: httpx.Client,
        limiter: RateLimiter | None = None,
    ):
        super().__init__(client, limiter)
        if not api_key:
            raise ValueError("ATTOM_API_KEY is required")
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client | None = None) -> "AttomAdapter":
        limiter = RateLimiter("attom", quota=settings.attom_quota, min_interval=settings.attom_delay)
        return cls(
            settings.attom_api_key,
            client or new_client(settings.http_timeout),
            limiter,
        )

    def _fetch(self, query: AddressQuery) -> list[dict]:
        response = self.client.get(
            f"{ATTOM_BASE_URL}/allevents/detail",
            params={"address1": query.address, "address2": query.locality},
            headers={"apikey": self.api_key, "Accept": "application/json"},
        )
        if response.status_code in (400, 404) and NO_RESULT_MESSAGE in response.text:
            return []
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            raise SourceError(f"unexpected ATTOM body: {type(data).__name__}")

        properties = [p for p in data.get("property") or [] if isinstance(p, dict)]
        for prop in properties:
            prop["_region"] = query.city
            if query.property_id:
                prop["_property_id"] = query.property_id
        return properties
