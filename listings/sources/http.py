import logging
import os

import httpx

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
}


def new_client(
    timeout: float = 30.0,
    headers: dict | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """
    Create a configured Client for the listing sources.
    Uses a small connection pool and retries transient connection errors.
    Pass ``transport`` (e.g. ``httpx.MockTransport``) to run without network.
    """
    if os.getenv("HTTP_DEBUG", "").lower() in {"1", "true", "yes"}:
        logging.getLogger("httpx").setLevel(logging.DEBUG)

    limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
    return httpx.Client(
        timeout=timeout,
        headers={**BROWSER_HEADERS, **(headers or {})},
        follow_redirects=True,
        limits=limits,
        transport=transport or httpx.HTTPTransport(retries=2),
    )
