from __future__ import annotations

import logging
import time
import zlib
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

from ..errors import FetchError

logger = logging.getLogger(__name__)

_FETCHABLE_SCHEMES = {"http", "https"}
_USER_AGENT = "Mozilla/5.0 (compatible; ReadLaterCrawler/1.0)"
_CHUNK_SIZE = 64 * 1024
_MAX_REDIRECTS = 10
# only encodings that can be inflated with a bounded output size
_ACCEPT_ENCODING = "gzip, deflate"


@dataclass(frozen=True)
class FetchedContent:
    body: bytes
    content_type: Optional[str]
    url: str
    status_code: int


def _validate_url(url: str) -> None:
    try:
        parsed = urlparse(url)
    except ValueError as exc:
        raise FetchError(url, f"invalid URL: {exc}") from exc
    if (parsed.scheme or "").lower() not in _FETCHABLE_SCHEMES:
        raise FetchError(url, f"unsupported scheme {parsed.scheme!r}")
    if not parsed.netloc:
        raise FetchError(url, "missing host")


def _remaining(deadline: float, request: httpx.Request) -> float:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise httpx.ReadTimeout("response not received before the deadline", request=request)
    return remaining


def _decoder(url: str, response: httpx.Response):
    encoding = response.headers.get("content-encoding", "").strip().lower()
    if encoding in ("", "identity"):
        return None
    if encoding in ("gzip", "x-gzip"):
        return zlib.decompressobj(16 + zlib.MAX_WBITS)
    if encoding == "deflate":
        # accepts zlib-wrapped and gzip streams
        return zlib.decompressobj(32 + zlib.MAX_WBITS)
    raise FetchError(url, f"unsupported content encoding {encoding!r}")


def _read_bounded(url: str, response: httpx.Response, max_bytes: int, deadline: float) -> bytes:
    # Content-Length is not trusted, and compressed bodies are inflated no
    # further than the ceiling
    decoder = _decoder(url, response)
    buffer = bytearray()
    for chunk in response.iter_raw(chunk_size=_CHUNK_SIZE):
        remaining = max_bytes - len(buffer)
        if decoder is None:
            buffer.extend(chunk[:remaining])
        else:
            try:
                buffer.extend(decoder.decompress(chunk, remaining))
            except zlib.error as exc:
                raise FetchError(url, f"corrupt {response.headers.get('content-encoding')} body: {exc}") from exc
        if len(buffer) >= max_bytes:
            break
        _remaining(deadline, response.request)
    return bytes(buffer)


def build_client(timeout: float) -> httpx.Client:
    return httpx.Client(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": _USER_AGENT, "Accept-Encoding": _ACCEPT_ENCODING},
    )


def _open(http: httpx.Client, url: str, timeout: float, deadline: float) -> httpx.Response:
    """Send the GET and follow redirects by hand, each hop within the deadline."""

    request = http.build_request(
        "GET", url, headers={"Accept-Encoding": _ACCEPT_ENCODING}, timeout=timeout
    )
    for _ in range(_MAX_REDIRECTS + 1):
        hop_timeout = min(timeout, _remaining(deadline, request))
        request.extensions["timeout"] = httpx.Timeout(hop_timeout).as_dict()
        response = http.send(request, stream=True, follow_redirects=False)
        if response.next_request is None:
            return response
        response.close()
        request = response.next_request
    raise FetchError(url, f"more than {_MAX_REDIRECTS} redirects")


def fetch_content(
    url: str,
    *,
    timeout: float,
    max_bytes: int,
    client: Optional[httpx.Client] = None,
) -> FetchedContent:
    """GET ``url`` and return at most ``max_bytes`` of its body.

    The body is read whatever the status code; the caller decides what to
    do with error pages. ``timeout`` bounds the whole fetch, redirects
    included. Raises :class:`FetchError` on timeouts, connection and
    protocol failures, and URLs that cannot be fetched.
    """

    _validate_url(url)
    owns_client = client is None
    http = client or build_client(timeout)
    deadline = time.monotonic() + timeout
    try:
        response = _open(http, url, timeout, deadline)
        try:
            body = _read_bounded(url, response, max_bytes, deadline)
        finally:
            response.close()
        if response.status_code >= 400:
            logger.info(
                "Non-success status while downloading %s",
                url,
                extra={"event": "fetch_http_status", "status_code": response.status_code},
            )
        return FetchedContent(
            body=body,
            content_type=response.headers.get("content-type"),
            url=str(response.url),
            status_code=response.status_code,
        )
    except httpx.TimeoutException as exc:
        raise FetchError(url, f"timed out after {timeout}s") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(url, str(exc) or exc.__class__.__name__) from exc
    finally:
        if owns_client:
            http.close()
