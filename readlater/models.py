from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlmodel import SQLModel, Field, Column


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetrievalStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("feed_id", name="uq_users_feed_id"),
    )

    id: str = Field(default_factory=lambda: gen_id("usr"), primary_key=True)
    username: str = Field(index=True)
    # Unguessable token for the unauthenticated feed URL, created on first use
    feed_id: Optional[str] = Field(default=None, index=True)
    last_update: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class Bookmark(SQLModel, table=True):
    __tablename__ = "bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "url", name="uq_bookmarks_user_url"),)

    id: str = Field(default_factory=lambda: gen_id("bm"), primary_key=True)
    user_id: str = Field(
        sa_column=Column(
            ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    url: str = Field(sa_column=Column(String, nullable=False))
    title: Optional[str] = None
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    tags: Optional[str] = None
    private: bool = Field(default=False, sa_column=Column(Boolean, nullable=False))
    readlater: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, index=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ReadLaterCandidate(SQLModel, table=True):
    __tablename__ = "read_later"
    __table_args__ = (UniqueConstraint("bookmark_id", name="uq_read_later_bookmark_id"),)

    id: str = Field(default_factory=lambda: gen_id("rl"), primary_key=True)
    user_id: str = Field(
        sa_column=Column(
            ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    bookmark_id: str = Field(
        sa_column=Column(
            ForeignKey("bookmarks.id", ondelete="CASCADE"), nullable=False
        )
    )
    retrieval_attempt_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
    )
    retrieval_status: str = Field(
        default=RetrievalStatus.PENDING.value,
        sa_column=Column(String(length=16), nullable=False, index=True),
    )
    enrolled_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    # Content fields below are only set once retrieval succeeded
    retrieval_time: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    title: Optional[str] = None
    byline: Optional[str] = None
    content: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    content_type: Optional[str] = None
