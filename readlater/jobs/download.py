from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from .. import store
from ..errors import ExtractionError, FetchError, StoreError
from ..observability.metrics import DOWNLOAD_COUNTER, DOWNLOAD_DURATION
from ..services import build_client, extract_article, fetch_content, sanitize_html
from ..store import DownloadItem, RetrievedArticle

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    selected: int = 0
    succeeded: int = 0
    failed: int = 0
    persist_errors: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.persist_errors


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def retrieve_article(
    url: str,
    *,
    timeout: float,
    max_bytes: int,
    client: httpx.Client,
    clock: Callable[[], datetime] = _utcnow,
) -> RetrievedArticle:
    """Download ``url`` and extract its article; content is not yet sanitized.

    Error statuses (4xx/5xx) are reported as :class:`FetchError` so that
    error pages are retried instead of stored as the article.
    """

    fetched = fetch_content(url, timeout=timeout, max_bytes=max_bytes, client=client)
    if fetched.status_code >= 400:
        raise FetchError(url, f"HTTP {fetched.status_code}")
    extracted = extract_article(fetched.body, fetched.url or url)
    return RetrievedArticle(
        retrieval_time=clock(),
        title=extracted.title,
        byline=extracted.byline,
        content=extracted.content,
        content_type=fetched.content_type,
    )


def _record_failure(item: DownloadItem, attempt_count: int, error: Exception, result: BatchResult) -> None:
    logger.warning(
        "Error downloading content for %s, marking it as failed: %s",
        item.url,
        error,
        extra={
            "event": "download_failed",
            "candidate_id": item.candidate_id,
            "attempt_count": attempt_count,
        },
    )
    try:
        store.mark_candidate_failed(item.candidate_id, attempt_count)
    except StoreError as exc:
        # attempt count was not persisted, the candidate is retried next tick
        logger.error(
            "Could not record failed download for %s: %s",
            item.candidate_id,
            exc,
            extra={"event": "persist_failed", "candidate_id": item.candidate_id},
        )
        result.persist_errors += 1
        DOWNLOAD_COUNTER.labels("persist_error").inc()
        return
    result.failed += 1
    DOWNLOAD_COUNTER.labels("failed").inc()


def _process_item(
    item: DownloadItem,
    *,
    timeout: float,
    max_bytes: int,
    client: httpx.Client,
    clock: Callable[[], datetime],
    result: BatchResult,
) -> None:
    attempt_count = item.attempt_count + 1
    logger.info(
        "Downloading content for %s",
        item.url,
        extra={"event": "download_start", "candidate_id": item.candidate_id, "attempt_count": attempt_count},
    )
    try:
        article = retrieve_article(item.url, timeout=timeout, max_bytes=max_bytes, client=client, clock=clock)
        sanitized = sanitize_html(article.content)
    except (FetchError, ExtractionError) as exc:
        _record_failure(item, attempt_count, exc, result)
        return
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error while retrieving %s", item.url)
        _record_failure(item, attempt_count, exc, result)
        return

    try:
        store.save_candidate_content(item.candidate_id, article, sanitized, attempt_count)
    except StoreError as exc:
        logger.error(
            "Could not save downloaded content for %s: %s",
            item.candidate_id,
            exc,
            extra={"event": "persist_failed", "candidate_id": item.candidate_id},
        )
        result.persist_errors += 1
        DOWNLOAD_COUNTER.labels("persist_error").inc()
        return
    result.succeeded += 1
    DOWNLOAD_COUNTER.labels("success").inc()
    logger.info(
        "Saved content for %s",
        item.url,
        extra={"event": "download_done", "candidate_id": item.candidate_id, "attempt_count": attempt_count},
    )


def process_batch(
    max_attempts: int,
    batch_size: int,
    *,
    timeout: float,
    max_bytes: int,
    client: Optional[httpx.Client] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> BatchResult:
    """Download up to ``batch_size`` pending candidates, one at a time.

    Each selected candidate gets exactly one attempt: its attempt count goes
    up by one whether the download succeeds or fails, and nothing is retried
    within the batch. ``should_stop`` is checked before each candidate.

    Raises :class:`StoreError` only when the batch itself cannot be selected;
    per-candidate persistence errors are logged and counted.
    """

    items = store.get_candidates_to_download(max_attempts, batch_size)
    result = BatchResult(selected=len(items))
    if not items:
        logger.info("No candidates to download", extra={"event": "batch_empty"})
        return result

    owns_client = client is None
    http = client or build_client(timeout)
    try:
        for item in items:
            if should_stop is not None and should_stop():
                logger.info("Stopping batch early on shutdown", extra={"event": "batch_cancelled"})
                result.cancelled = True
                break
            start = time.time()
            _process_item(item, timeout=timeout, max_bytes=max_bytes, client=http, clock=clock, result=result)
            DOWNLOAD_DURATION.observe(time.time() - start)
    finally:
        if owns_client:
            http.close()

    logger.info(
        "Batch finished: %d succeeded, %d failed",
        result.succeeded,
        result.failed,
        extra={
            "event": "batch_done",
            "selected": result.selected,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "persist_errors": result.persist_errors,
        },
    )
    return result


__all__ = ["BatchResult", "process_batch", "retrieve_article"]
