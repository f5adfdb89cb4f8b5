from datetime import datetime, timedelta, timezone

import pytest

from readlater.models import RetrievalStatus


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SQLMODEL_CREATE_ALL", "1")
    from readlater.db import init_db

    init_db()
    yield


def test_find_read_later_items_lists_finished_candidates_only():
    from readlater import store
    from tests.factories import create_bookmark, create_candidate, create_user

    now = datetime.now(timezone.utc)
    create_user()
    create_user(user_id="user-2")
    done = create_bookmark(url="https://example.com/done", created_at=now - timedelta(days=1))
    given_up = create_bookmark(url="https://example.com/given-up", created_at=now - timedelta(days=2))
    retrying = create_bookmark(url="https://example.com/retrying", created_at=now - timedelta(days=3))
    pending = create_bookmark(url="https://example.com/pending", created_at=now - timedelta(days=4))
    foreign = create_bookmark(user_id="user-2", url="https://example.com/done", created_at=now)
    create_candidate(done, attempts=1, status=RetrievalStatus.SUCCESS, content="<p>done</p>")
    create_candidate(given_up, attempts=3, status=RetrievalStatus.FAILED)
    create_candidate(retrying, attempts=2, status=RetrievalStatus.FAILED)
    create_candidate(pending)
    create_candidate(foreign, attempts=1, status=RetrievalStatus.SUCCESS, content="<p>other</p>")

    items = store.find_read_later_items("user-1", 3)

    assert [item.url for item in items] == ["https://example.com/done", "https://example.com/given-up"]
    assert items[0].successfully_retrieved is True
    assert items[0].content == "<p>done</p>"
    assert items[0].retrieval_time.tzinfo is not None
    assert items[1].successfully_retrieved is False
    assert items[1].content is None
    assert items[1].retrieval_time is None


def test_lowering_max_attempts_exposes_more_failures():
    from readlater import store
    from tests.factories import create_bookmark, create_candidate, create_user

    create_user()
    bookmark = create_bookmark()
    create_candidate(bookmark, attempts=2, status=RetrievalStatus.FAILED)

    assert store.find_read_later_items("user-1", 3) == []
    assert len(store.find_read_later_items("user-1", 2)) == 1


def test_candidates_with_fewer_attempts_are_selected_first():
    from readlater import store
    from tests.factories import create_bookmark, create_candidate, create_user

    create_user()
    retried = create_candidate(create_bookmark(url="https://example.com/retried"), attempts=2, status=RetrievalStatus.FAILED)
    fresh = create_candidate(create_bookmark(url="https://example.com/fresh"))
    create_candidate(create_bookmark(url="https://example.com/ok"), attempts=1, status=RetrievalStatus.SUCCESS)

    items = store.get_candidates_to_download(3, 10)

    assert [item.candidate_id for item in items] == [fresh.id, retried.id]
    assert items[1].attempt_count == 2
    assert items[1].url == "https://example.com/retried"
    assert [item.candidate_id for item in store.get_candidates_to_download(3, 1)] == [fresh.id]


def test_mark_candidate_failed_keeps_content_empty():
    from readlater import store
    from tests.factories import create_bookmark, create_candidate, create_user, get_candidate

    create_user()
    candidate = create_candidate(create_bookmark())

    store.mark_candidate_failed(candidate.id, 1)

    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.FAILED.value
    assert row.retrieval_attempt_count == 1
    assert row.content is None


def test_updates_for_vanished_candidate_are_ignored():
    from readlater import store
    from readlater.store import RetrievedArticle

    article = RetrievedArticle(
        retrieval_time=datetime.now(timezone.utc),
        title="t",
        byline=None,
        content="<p>x</p>",
        content_type="text/html",
    )

    store.mark_candidate_failed("missing", 1)
    store.save_candidate_content("missing", article, "<p>x</p>", 1)


def test_feed_id_is_created_once_and_resolves_to_user():
    from readlater import store
    from tests.factories import create_user

    create_user()

    feed_id = store.get_or_create_feed_id("user-1")

    assert feed_id
    assert store.get_or_create_feed_id("user-1") == feed_id
    assert store.find_user_id_for_feed_id(feed_id) == "user-1"
    assert store.find_user_id_for_feed_id("not-a-feed") is None


def test_feed_id_for_unknown_user_raises():
    from readlater import store

    with pytest.raises(LookupError):
        store.get_or_create_feed_id("ghost")
