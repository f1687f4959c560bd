"""Logging setup shared by the import scripts, with optional Logfire export."""

import logging
import os

import logfire

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(verbose: bool = False) -> None:
    """Set up logging for a script run.

    Logfire is optional and only enabled when LOGFIRE_TOKEN is set; it then
    also receives stdlib log records and traces outgoing httpx calls.
    """
    global _configured
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    # Configure Logfire for observability (optional - only if token is set)
    if os.getenv("LOGFIRE_TOKEN") and not _configured:
        logfire.configure()
        logfire.instrument_httpx()
        logging.getLogger().addHandler(logfire.LogfireLoggingHandler())
        _configured = True
