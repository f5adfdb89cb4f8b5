from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from readlater.db import get_session  # noqa: E402
from readlater.models import (  # noqa: E402
    Bookmark,
    ReadLaterCandidate,
    RetrievalStatus,
    User,
)

ARTICLE_HTML = """
<html>
  <head>
    <title>A Field Guide to Sourdough Starters</title>
    <meta name="author" content="Ada Baker">
  </head>
  <body>
    <nav><a href="/">Home</a> <a href="/about">About</a></nav>
    <article>
      <h1>A Field Guide to Sourdough Starters</h1>
      <p>A sourdough starter is a living culture of wild yeast and lactic acid
      bacteria. Feeding it flour and water on a steady schedule keeps the
      culture active, predictable and ready to raise a loaf of bread.</p>
      <p>Most bakers keep their starter at room temperature while they bake
      often, and move it to the refrigerator when they bake only once a week.
      A cold starter needs a feeding or two before it is lively again.</p>
      <p>Hydration matters as much as temperature. A stiff starter ferments
      more slowly and tastes milder, while a liquid starter is quicker and
      more sour. Read the <a href="/next">next chapter</a> for recipes.</p>
      <script>document.write("tracking pixel")</script>
    </article>
    <footer>Copyright 2026</footer>
  </body>
</html>
"""


def create_user(*, user_id: str = "user-1", username: Optional[str] = None, feed_id: Optional[str] = None) -> User:
    """Create a user record for tests."""

    with next(get_session()) as session:
        user = User(id=user_id, username=username or user_id, feed_id=feed_id)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


def create_bookmark(
    *,
    user_id: str = "user-1",
    url: str = "https://example.com/article",
    readlater: bool = True,
    created_at: Optional[datetime] = None,
    title: Optional[str] = None,
) -> Bookmark:
    """Create a bookmark; ``created_at`` defaults to now."""

    created = created_at or datetime.now(timezone.utc)
    with next(get_session()) as session:
        bookmark = Bookmark(
            user_id=user_id,
            url=url,
            title=title,
            readlater=readlater,
            created_at=created,
            updated_at=created,
        )
        session.add(bookmark)
        session.commit()
        session.refresh(bookmark)
        return bookmark


def create_candidate(
    bookmark: Bookmark,
    *,
    attempts: int = 0,
    status: RetrievalStatus = RetrievalStatus.PENDING,
    content: Optional[str] = None,
) -> ReadLaterCandidate:
    with next(get_session()) as session:
        candidate = ReadLaterCandidate(
            user_id=bookmark.user_id,
            bookmark_id=bookmark.id,
            retrieval_attempt_count=attempts,
            retrieval_status=status.value,
            content=content,
        )
        if status is RetrievalStatus.SUCCESS:
            candidate.retrieval_time = datetime.now(timezone.utc)
        session.add(candidate)
        session.commit()
        session.refresh(candidate)
        return candidate


def get_candidate(candidate_id: str) -> Optional[ReadLaterCandidate]:
    with next(get_session()) as session:
        return session.get(ReadLaterCandidate, candidate_id)


def get_candidate_for_bookmark(bookmark_id: str) -> Optional[ReadLaterCandidate]:
    from sqlmodel import select

    with next(get_session()) as session:
        return session.exec(
            select(ReadLaterCandidate).where(ReadLaterCandidate.bookmark_id == bookmark_id)
        ).first()
