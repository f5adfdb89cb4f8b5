from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx

from ..config import CrawlerSettings
from ..errors import StoreError
from ..observability.metrics import TICK_COUNTER, TICK_DURATION
from .candidates import discover_candidates, feed_cutoff, prune_candidates
from .download import BatchResult, process_batch

logger = logging.getLogger(__name__)

_FREQUENCY_PATTERN = re.compile(r"^\s*(\d+)\s*([smhdwSMHDW])\s*$")
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
    "w": 60 * 60 * 24 * 7,
}


def parse_frequency(value: str) -> timedelta:
    """Parse a frequency string like ``"15m"`` or ``"1h"``.

    Returns a :class:`datetime.timedelta` representing the requested interval.
    Raises :class:`ValueError` when the format is invalid.
    """

    if not value:
        raise ValueError("Frequency must be provided")

    match = _FREQUENCY_PATTERN.match(value)
    if not match:
        raise ValueError("Frequency must be an integer followed by s/m/h/d/w")

    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError("Frequency must be greater than zero")

    unit = match.group(2).lower()
    seconds = amount * _UNIT_SECONDS[unit]
    return timedelta(seconds=seconds)


@dataclass
class TickResult:
    cutoff: datetime
    enrolled: int = 0
    pruned: int = 0
    batch: Optional[BatchResult] = None
    error: Optional[str] = None


def run_tick(
    settings: CrawlerSettings,
    *,
    now: Optional[datetime] = None,
    client: Optional[httpx.Client] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> TickResult:
    """Run one crawler pass: discover, prune, then download a batch.

    The retention cutoff is computed once and shared by discovery and
    pruning. A store error during discovery or pruning ends the tick before
    the download batch; the next tick starts over.
    """

    effective_now = now or datetime.now(timezone.utc)
    cutoff = feed_cutoff(effective_now, settings.retention_months)
    result = TickResult(cutoff=cutoff)
    start = time.time()
    logger.info("Running bookmark crawler", extra={"event": "tick_start", "cutoff": cutoff.isoformat()})

    try:
        result.enrolled = len(discover_candidates(cutoff))
        result.pruned = prune_candidates(cutoff)
    except StoreError as exc:
        logger.error("Candidate maintenance failed, ending tick early: %s", exc, extra={"event": "tick_aborted"})
        result.error = str(exc)
        TICK_COUNTER.labels("aborted").inc()
        TICK_DURATION.observe(time.time() - start)
        return result

    try:
        result.batch = process_batch(
            settings.max_download_attempts,
            settings.batch_size,
            timeout=settings.download_timeout_seconds,
            max_bytes=settings.max_download_bytes,
            client=client,
            should_stop=should_stop,
        )
    except StoreError as exc:
        logger.error("Could not select candidates to download: %s", exc, extra={"event": "tick_aborted"})
        result.error = str(exc)
        TICK_COUNTER.labels("aborted").inc()
        TICK_DURATION.observe(time.time() - start)
        return result

    TICK_COUNTER.labels("completed").inc()
    TICK_DURATION.observe(time.time() - start)
    logger.info(
        "Crawler tick finished",
        extra={"event": "tick_done", "enrolled": result.enrolled, "pruned": result.pruned},
    )
    return result


__all__ = ["TickResult", "parse_frequency", "run_tick"]
