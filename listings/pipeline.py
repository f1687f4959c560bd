"""Sequential fetch → normalize → upsert loop shared by every import job."""

import logging
import time
from typing import Any, Callable, Iterable, Protocol

from pydantic import BaseModel, ValidationError

from .ratelimit import QuotaExhausted
from .sink import PropertySink
from .transformations import Normalizer

logger = logging.getLogger(__name__)


class Adapter(Protocol):
    source: str

    def fetch(self, query: Any) -> list[dict] | None: ...


class BatchSummary(BaseModel):
    """Counters for one batch run."""

    queries: int = 0
    fetched: int = 0
    not_found: int = 0
    failed: int = 0
    dropped: int = 0
    upserted: int = 0
    write_failed: int = 0
    quota_exhausted: bool = False

    def __str__(self) -> str:
        text = (
            f"{self.queries} queries: {self.fetched} records fetched, "
            f"{self.upserted} upserted, {self.not_found} not found, "
            f"{self.failed} failed, {self.dropped} dropped, "
            f"{self.write_failed} write errors"
        )
        if self.quota_exhausted:
            text += " (stopped: quota exhausted)"
        return text


def run_batch(
    adapter: Adapter,
    queries: Iterable[Any],
    normalizer: Normalizer,
    sink: PropertySink,
    delay: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
    on_record: Callable[[Any], None] | None = None,
) -> BatchSummary:
    """Run every query through adapter, normalizer and sink, one at a time.

    A failing query is counted and skipped; only quota exhaustion ends the
    batch early. ``delay`` seconds are slept between queries (not after the
    last one).
    """
    summary = BatchSummary()
    for index, query in enumerate(queries):
        if index and delay > 0:
            sleep(delay)
        summary.queries += 1

        try:
            items = adapter.fetch(query)
        except QuotaExhausted as e:
            logger.warning("%s: %s; stopping batch", adapter.source, e)
            summary.queries -= 1
            summary.quota_exhausted = True
            break
        except Exception:
            logger.exception("%s: unexpected error fetching %s", adapter.source, query)
            summary.failed += 1
            continue

        if items is None:
            summary.failed += 1
            continue
        if not items:
            summary.not_found += 1
            continue

        summary.fetched += len(items)
        for item in items:
            try:
                record = normalizer.normalize(item, adapter.source)
            except ValidationError as e:
                logger.warning("%s: dropping malformed record from %s: %s", adapter.source, query, e)
                record = None
            if record is None:
                summary.dropped += 1
                continue
            if sink.upsert(record):
                summary.upserted += 1
                if on_record:
                    on_record(record)
            else:
                summary.write_failed += 1

    return summary
