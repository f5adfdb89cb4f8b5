"""Storage operations used by the read-later pipeline and the feed endpoint.

Every function opens its own session and commits before returning, so each
call is one short transaction. Database failures are re-raised as
:class:`~readlater.errors.StoreError`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional
from uuid import uuid4

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import or_, select

from .db import get_session_ctx
from .errors import StoreError
from .models import Bookmark, ReadLaterCandidate, RetrievalStatus, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedCandidate:
    bookmark_id: str
    user_id: str


@dataclass(frozen=True)
class DownloadItem:
    candidate_id: str
    url: str
    attempt_count: int


@dataclass(frozen=True)
class RetrievedArticle:
    retrieval_time: datetime
    title: Optional[str]
    byline: Optional[str]
    content: str
    content_type: Optional[str]


@dataclass(frozen=True)
class ReadLaterItem:
    url: str
    successfully_retrieved: bool
    title: Optional[str]
    byline: Optional[str]
    content: Optional[str]
    content_type: Optional[str]
    retrieval_time: Optional[datetime]


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@contextmanager
def _store_call(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(f"{operation} failed: {exc}") from exc


def find_feed_candidates(cutoff: datetime) -> List[FeedCandidate]:
    """Return read-later bookmarks created after ``cutoff`` with no candidate yet."""

    with _store_call("find_feed_candidates"), get_session_ctx() as session:
        stmt = (
            select(Bookmark.id, Bookmark.user_id)
            .outerjoin(ReadLaterCandidate, ReadLaterCandidate.bookmark_id == Bookmark.id)
            .where(Bookmark.readlater.is_(True))
            .where(Bookmark.created_at > cutoff)
            .where(ReadLaterCandidate.id.is_(None))
            .order_by(Bookmark.created_at, Bookmark.id)
        )
        rows = session.exec(stmt).all()
    return [FeedCandidate(bookmark_id=bookmark_id, user_id=user_id) for bookmark_id, user_id in rows]


def save_feed_candidate(candidate: FeedCandidate) -> ReadLaterCandidate:
    with _store_call("save_feed_candidate"), get_session_ctx() as session:
        row = ReadLaterCandidate(
            user_id=candidate.user_id,
            bookmark_id=candidate.bookmark_id,
            retrieval_attempt_count=0,
            retrieval_status=RetrievalStatus.PENDING.value,
        )
        session.add(row)
        session.commit()
        session.refresh(row)
        return row


def prune_feed_candidates(cutoff: datetime) -> int:
    """Delete candidates whose bookmark was created before ``cutoff``.

    The bookmarks are left alone. Returns the number of candidates removed.
    """

    with _store_call("prune_feed_candidates"), get_session_ctx() as session:
        aged_out = select(Bookmark.id).where(Bookmark.created_at < cutoff)
        result = session.execute(
            delete(ReadLaterCandidate).where(ReadLaterCandidate.bookmark_id.in_(aged_out))
        )
        session.commit()
        return result.rowcount or 0


def get_candidates_to_download(max_attempts: int, batch_size: int) -> List[DownloadItem]:
    """Return up to ``batch_size`` unfinished candidates below ``max_attempts``.

    Successful candidates never qualify. Candidates with fewer attempts come
    first so a backlog of repeatedly failing pages cannot starve new ones.
    """

    with _store_call("get_candidates_to_download"), get_session_ctx() as session:
        stmt = (
            select(ReadLaterCandidate.id, Bookmark.url, ReadLaterCandidate.retrieval_attempt_count)
            .join(Bookmark, Bookmark.id == ReadLaterCandidate.bookmark_id)
            .where(
                or_(
                    ReadLaterCandidate.retrieval_status == RetrievalStatus.PENDING.value,
                    ReadLaterCandidate.retrieval_status == RetrievalStatus.FAILED.value,
                )
            )
            .where(ReadLaterCandidate.retrieval_attempt_count < max_attempts)
            .order_by(
                ReadLaterCandidate.retrieval_attempt_count.asc(),
                ReadLaterCandidate.enrolled_at.asc(),
                ReadLaterCandidate.id.asc(),
            )
            .limit(batch_size)
        )
        rows = session.exec(stmt).all()
    return [
        DownloadItem(candidate_id=candidate_id, url=url, attempt_count=attempt_count or 0)
        for candidate_id, url, attempt_count in rows
    ]


def mark_candidate_failed(candidate_id: str, attempt_count: int) -> None:
    with _store_call("mark_candidate_failed"), get_session_ctx() as session:
        row = session.get(ReadLaterCandidate, candidate_id)
        if row is None:
            logger.info("Candidate %s vanished before it could be marked failed", candidate_id)
            return
        row.retrieval_status = RetrievalStatus.FAILED.value
        row.retrieval_attempt_count = attempt_count
        session.add(row)
        session.commit()


def save_candidate_content(
    candidate_id: str,
    article: RetrievedArticle,
    sanitized_content: str,
    attempt_count: int,
) -> None:
    with _store_call("save_candidate_content"), get_session_ctx() as session:
        row = session.get(ReadLaterCandidate, candidate_id)
        if row is None:
            logger.info("Candidate %s vanished before its content could be saved", candidate_id)
            return
        row.retrieval_status = RetrievalStatus.SUCCESS.value
        row.retrieval_attempt_count = attempt_count
        row.retrieval_time = article.retrieval_time
        row.title = article.title
        row.byline = article.byline
        row.content = sanitized_content
        row.content_type = article.content_type
        session.add(row)
        session.commit()


def find_read_later_items(user_id: str, max_attempts: int) -> List[ReadLaterItem]:
    """Return the user's candidates that succeeded or exhausted their attempts."""

    with _store_call("find_read_later_items"), get_session_ctx() as session:
        stmt = (
            select(ReadLaterCandidate, Bookmark.url)
            .join(Bookmark, Bookmark.id == ReadLaterCandidate.bookmark_id)
            .where(ReadLaterCandidate.user_id == user_id)
            .where(
                or_(
                    ReadLaterCandidate.retrieval_status == RetrievalStatus.SUCCESS.value,
                    ReadLaterCandidate.retrieval_attempt_count >= max_attempts,
                )
            )
            .order_by(Bookmark.created_at.desc(), ReadLaterCandidate.id)
        )
        rows = session.exec(stmt).all()
    items: List[ReadLaterItem] = []
    for candidate, url in rows:
        succeeded = candidate.retrieval_status == RetrievalStatus.SUCCESS.value
        items.append(
            ReadLaterItem(
                url=url,
                successfully_retrieved=succeeded,
                title=candidate.title,
                byline=candidate.byline,
                content=candidate.content,
                content_type=candidate.content_type,
                retrieval_time=_ensure_utc(candidate.retrieval_time),
            )
        )
    return items


def get_or_create_feed_id(user_id: str) -> str:
    with _store_call("get_or_create_feed_id"), get_session_ctx() as session:
        user = session.get(User, user_id)
        if user is None:
            raise LookupError(f"Unknown user: {user_id}")
        if user.feed_id:
            return user.feed_id
        user.feed_id = str(uuid4())
        session.add(user)
        session.commit()
        return user.feed_id


def find_user_id_for_feed_id(feed_id: str) -> Optional[str]:
    with _store_call("find_user_id_for_feed_id"), get_session_ctx() as session:
        return session.exec(select(User.id).where(User.feed_id == feed_id)).first()


__all__ = [
    "DownloadItem",
    "FeedCandidate",
    "ReadLaterItem",
    "RetrievedArticle",
    "find_feed_candidates",
    "find_read_later_items",
    "find_user_id_for_feed_id",
    "get_candidates_to_download",
    "get_or_create_feed_id",
    "mark_candidate_failed",
    "prune_feed_candidates",
    "save_candidate_content",
    "save_feed_candidate",
]
