"""Shared behaviour for source adapters.

An adapter turns one query into a list of raw vendor records:

- ``[]``   the source answered but has nothing for this query
- ``None`` the call failed (network, HTTP status, unparseable body); logged

``QuotaExhausted`` from the rate limiter is not a per-query failure and
propagates to the batch loop.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """A source responded, but not with anything we can read."""


class SourceAdapter(ABC):
    source: str = "generic"

    def __init__(self, client: httpx.Client | None = None, limiter: RateLimiter | None = None):
        self.client = client
        self.limiter = limiter

    def fetch(self, query: Any) -> list[dict] | None:
        try:
            if self.limiter is not None:
                self.limiter.acquire()
            return self._fetch(query)
        except (httpx.HTTPError, ValueError, SourceError) as e:
            logger.warning("%s: fetch failed for %s: %s", self.source, query, e)
            return None

    @abstractmethod
    def _fetch(self, query: Any) -> list[dict]:
        """Query the source. Raise on failure; return [] when nothing matches."""
        ...

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
