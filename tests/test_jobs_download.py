from datetime import datetime, timedelta, timezone

import httpx
import pytest

from tests.factories import ARTICLE_HTML


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SQLMODEL_CREATE_ALL", "1")
    from readlater.db import init_db

    init_db()
    yield


def _article_client(calls=None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(
            200,
            content=ARTICLE_HTML.encode("utf-8"),
            headers={"Content-Type": "text/html; charset=utf-8"},
        )

    return httpx.Client(transport=httpx.MockTransport(handler))


def _timeout_client(calls=None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        raise httpx.ReadTimeout("timed out", request=request)

    return httpx.Client(transport=httpx.MockTransport(handler))


def _pending_candidate(url="https://example.com/article", **kwargs):
    from tests.factories import create_bookmark, create_candidate, create_user
    from readlater.db import get_session
    from readlater.models import User

    with next(get_session()) as session:
        exists = session.get(User, "user-1") is not None
    if not exists:
        create_user()
    bookmark = create_bookmark(url=url)
    return create_candidate(bookmark, **kwargs)


def _run(client, *, max_attempts=3, batch_size=20, **kwargs):
    from readlater.jobs.download import process_batch

    return process_batch(max_attempts, batch_size, timeout=5, max_bytes=1_000_000, client=client, **kwargs)


def test_successful_download_stores_sanitized_article():
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()
    before = datetime.now(timezone.utc)

    with _article_client() as client:
        result = _run(client)

    assert result.selected == 1
    assert result.succeeded == 1
    assert result.failed == 0
    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.SUCCESS.value
    assert row.retrieval_attempt_count == 1
    assert row.title == "A Field Guide to Sourdough Starters"
    assert row.byline == "Ada Baker"
    assert "living culture of wild yeast" in row.content
    assert "<script" not in row.content
    assert "tracking pixel" not in row.content
    assert row.content_type == "text/html; charset=utf-8"
    retrieved = row.retrieval_time.replace(tzinfo=timezone.utc)
    assert retrieved >= before - timedelta(seconds=1)


def test_timeout_marks_candidate_failed_but_retryable():
    from readlater import store
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()

    with _timeout_client() as client:
        result = _run(client)

    assert result.failed == 1
    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.FAILED.value
    assert row.retrieval_attempt_count == 1
    assert row.content is None
    assert row.title is None
    assert row.retrieval_time is None
    assert [item.candidate_id for item in store.get_candidates_to_download(3, 20)] == [candidate.id]


def test_error_status_is_treated_as_failure():
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, content=ARTICLE_HTML.encode("utf-8"))

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        result = _run(client)

    assert result.failed == 1
    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.FAILED.value
    assert row.content is None


def test_extraction_failure_counts_as_attempt():
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        result = _run(client)

    assert result.failed == 1
    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.FAILED.value
    assert row.retrieval_attempt_count == 1


def test_attempt_count_tracks_processed_ticks_until_exhausted():
    from readlater import store
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()
    calls = []

    with _timeout_client(calls) as client:
        for expected in (1, 2, 3):
            _run(client, max_attempts=3)
            assert get_candidate(candidate.id).retrieval_attempt_count == expected
        # exhausted: not selected, not fetched again
        result = _run(client, max_attempts=3)

    assert result.selected == 0
    assert len(calls) == 3
    row = get_candidate(candidate.id)
    assert row.retrieval_attempt_count == 3
    assert row.retrieval_status == RetrievalStatus.FAILED.value
    assert store.get_candidates_to_download(3, 20) == []


def test_successful_candidate_is_never_selected_again():
    from readlater import store
    from tests.factories import get_candidate

    candidate = _pending_candidate()
    calls = []

    with _article_client(calls) as client:
        _run(client)
        second = _run(client)

    assert second.selected == 0
    assert len(calls) == 1
    assert get_candidate(candidate.id).retrieval_attempt_count == 1
    assert store.get_candidates_to_download(10, 20) == []


def test_retry_after_failure_can_succeed():
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()

    with _timeout_client() as client:
        _run(client)
    with _article_client() as client:
        _run(client)

    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.SUCCESS.value
    assert row.retrieval_attempt_count == 2


def test_batch_size_bounds_work_per_tick():
    from readlater.db import get_session
    from readlater.models import ReadLaterCandidate
    from sqlmodel import select

    for i in range(25):
        _pending_candidate(url=f"https://example.com/article-{i}")
    calls = []

    with _article_client(calls) as client:
        first = _run(client, batch_size=20)
        assert first.selected == 20
        assert first.succeeded == 20
        second = _run(client, batch_size=20)
        assert second.selected == 5
        assert second.succeeded == 5
        third = _run(client, batch_size=20)
        assert third.selected == 0

    assert len(calls) == 25
    assert len(set(calls)) == 25
    with next(get_session()) as session:
        rows = session.exec(select(ReadLaterCandidate)).all()
    assert {row.retrieval_attempt_count for row in rows} == {1}


def test_store_error_while_persisting_leaves_candidate_for_next_tick(monkeypatch):
    from readlater import store
    from readlater.errors import StoreError
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()
    other = _pending_candidate(url="https://example.com/other")

    real_save = store.save_candidate_content

    def _flaky_save(candidate_id, article, sanitized, attempt_count):
        if candidate_id == candidate.id:
            raise StoreError("save_candidate_content failed: database is locked")
        return real_save(candidate_id, article, sanitized, attempt_count)

    monkeypatch.setattr(store, "save_candidate_content", _flaky_save)

    with _article_client() as client:
        result = _run(client)

    assert result.persist_errors == 1
    assert result.succeeded == 1
    row = get_candidate(candidate.id)
    assert row.retrieval_attempt_count == 0
    assert row.retrieval_status == RetrievalStatus.PENDING.value
    assert get_candidate(other.id).retrieval_status == RetrievalStatus.SUCCESS.value
    assert [item.candidate_id for item in store.get_candidates_to_download(3, 20)] == [candidate.id]


def test_should_stop_ends_batch_between_candidates():
    for i in range(3):
        _pending_candidate(url=f"https://example.com/stop-{i}")
    calls = []
    checks = []

    def should_stop():
        checks.append(True)
        return len(checks) > 1

    with _article_client(calls) as client:
        result = _run(client, should_stop=should_stop)

    assert result.cancelled is True
    assert result.selected == 3
    assert result.succeeded == 1
    assert len(calls) == 1


def test_unexpected_error_is_recorded_as_failure(monkeypatch):
    from readlater.jobs import download
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    candidate = _pending_candidate()

    def _explode(body, url):
        raise TypeError("parser bug")

    monkeypatch.setattr(download, "extract_article", _explode)

    with _article_client() as client:
        result = _run(client)

    assert result.failed == 1
    row = get_candidate(candidate.id)
    assert row.retrieval_status == RetrievalStatus.FAILED.value
    assert row.retrieval_attempt_count == 1


def test_sanitizer_error_counts_as_attempt_and_batch_continues(monkeypatch):
    from readlater.jobs import download
    from readlater.models import RetrievalStatus
    from tests.factories import get_candidate

    broken = _pending_candidate(url="https://example.com/broken")
    healthy = _pending_candidate(url="https://example.com/healthy")
    real_sanitize = download.sanitize_html
    calls = []

    def _sanitize(html):
        calls.append(html)
        if len(calls) == 1:
            raise RecursionError("maximum recursion depth exceeded")
        return real_sanitize(html)

    monkeypatch.setattr(download, "sanitize_html", _sanitize)

    with _article_client() as client:
        result = _run(client)

    assert result.failed == 1
    assert result.succeeded == 1
    rows = {row.retrieval_status: row for row in (get_candidate(broken.id), get_candidate(healthy.id))}
    assert set(rows) == {RetrievalStatus.FAILED.value, RetrievalStatus.SUCCESS.value}
    failed = rows[RetrievalStatus.FAILED.value]
    assert failed.retrieval_attempt_count == 1
    assert failed.content is None
    assert rows[RetrievalStatus.SUCCESS.value].retrieval_attempt_count == 1
