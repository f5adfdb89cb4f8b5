from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from dateutil.relativedelta import relativedelta

from .. import store
from ..observability.metrics import CANDIDATES_ENROLLED, CANDIDATES_PRUNED
from ..store import FeedCandidate

logger = logging.getLogger(__name__)


def feed_cutoff(now: datetime, months: int) -> datetime:
    """Return ``now`` moved back ``months`` calendar months, in UTC.

    Day overflow is clamped, so 31 August minus six months is 28/29 February.
    """

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc) - relativedelta(months=months)


def discover_candidates(cutoff: datetime) -> List[FeedCandidate]:
    """Enroll read-later bookmarks created after ``cutoff`` that have no candidate.

    Running it again without new bookmarks enrolls nothing, since enrolled
    bookmarks no longer match. Store errors propagate as ``StoreError``.
    """

    logger.info("Finding new feed candidates", extra={"event": "discover_start", "cutoff": cutoff.isoformat()})
    enrolled: List[FeedCandidate] = []
    for candidate in store.find_feed_candidates(cutoff):
        store.save_feed_candidate(candidate)
        CANDIDATES_ENROLLED.inc()
        logger.info(
            "Enrolled read-later bookmark %s",
            candidate.bookmark_id,
            extra={"event": "candidate_enrolled", "bookmark_id": candidate.bookmark_id, "user_id": candidate.user_id},
        )
        enrolled.append(candidate)
    return enrolled


def prune_candidates(cutoff: datetime) -> int:
    """Remove candidates whose bookmark was created before ``cutoff``."""

    removed = store.prune_feed_candidates(cutoff)
    if removed:
        CANDIDATES_PRUNED.inc(removed)
    logger.info(
        "Pruned %d feed candidates",
        removed,
        extra={"event": "candidates_pruned", "count": removed, "cutoff": cutoff.isoformat()},
    )
    return removed


__all__ = ["discover_candidates", "feed_cutoff", "prune_candidates"]
