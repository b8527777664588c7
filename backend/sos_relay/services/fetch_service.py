import enum
import logging
import re
from typing import Callable
from urllib.parse import unquote, urlsplit

import httpx

from sos_relay.config import Settings
from sos_relay.errors import DocumentUnavailable
from sos_relay.models import FetchedDocument
from sos_relay.utils.filenames import base_content_type, filename_from_url, sanitize_filename

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}
BLOCKED_STATUSES = {401, 403}
# InvalidURL and CookieConflict do not derive from httpx.HTTPError.
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, httpx.CookieConflict)
BINARY_ACCEPT = "application/pdf,application/octet-stream;q=0.9,image/*;q=0.8,*/*;q=0.5"
PAGE_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"


class FetchOutcome(enum.Enum):
    OK = "ok"
    BLOCKED = "blocked"
    UNAVAILABLE = "unavailable"


def classify_response(resp: httpx.Response) -> FetchOutcome:
    """Both a 401/403 and an HTML body count as a challenge page."""
    ctype = base_content_type(resp.headers.get("Content-Type"))
    if resp.status_code in BLOCKED_STATUSES or ctype in HTML_CONTENT_TYPES:
        return FetchOutcome.BLOCKED
    if not resp.is_success:
        return FetchOutcome.UNAVAILABLE
    return FetchOutcome.OK


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {url}")
    return f"{parts.scheme}://{parts.netloc}"


def _filename_from_disposition(disposition: str | None) -> str | None:
    if not disposition:
        return None
    match = re.search(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', disposition, re.I)
    if not match:
        return None
    return sanitize_filename(unquote(match.group(1)))


class DocumentFetcher:
    """Downloads documents, working around HTML challenge pages.

    Every ``fetch`` call gets its own client, so cookies collected while
    priming one host never leak into another download.
    """

    def __init__(self, settings: Settings, client_factory: Callable[[], httpx.AsyncClient]):
        self._settings = settings
        self._client_factory = client_factory

    def _headers(self, accept: str = BINARY_ACCEPT, referer: str | None = None) -> dict[str, str]:
        headers = {
            "User-Agent": self._settings.user_agent,
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
        }
        if referer:
            headers["Referer"] = referer
        return headers

    async def _read_capped(self, url: str, resp: httpx.Response) -> bytes:
        cap = self._settings.download_max_bytes
        declared = resp.headers.get("Content-Length", "")
        if declared.isdigit() and int(declared) > cap:
            raise DocumentUnavailable(url, f"Content-Length {declared} exceeds {cap} byte cap")

        chunks: list[bytes] = []
        size = 0
        async for chunk in resp.aiter_bytes():
            size += len(chunk)
            if size > cap:
                raise DocumentUnavailable(url, f"payload exceeds {cap} byte cap")
            chunks.append(chunk)
        return b"".join(chunks)

    async def _get(
        self, client: httpx.AsyncClient, url: str, headers: dict[str, str]
    ) -> tuple[FetchOutcome, httpx.Response, bytes]:
        """Stream one GET; the body is only read when the response looks like the file."""
        try:
            async with client.stream("GET", url, headers=headers, follow_redirects=True) as resp:
                outcome = classify_response(resp)
                payload = await self._read_capped(url, resp) if outcome is FetchOutcome.OK else b""
                return outcome, resp, payload
        except REQUEST_ERRORS as exc:
            raise DocumentUnavailable(url, f"request failed ({exc.__class__.__name__})") from exc

    def _to_document(self, url: str, resp: httpx.Response, payload: bytes) -> FetchedDocument:
        file_name = _filename_from_disposition(resp.headers.get("Content-Disposition")) or filename_from_url(url)
        return FetchedDocument(
            file_name=file_name,
            content_type=base_content_type(resp.headers.get("Content-Type")),
            payload=payload,
        )

    async def fetch(self, url: str) -> FetchedDocument:
        try:
            origin = origin_of(url)
        except ValueError as exc:
            raise DocumentUnavailable(url, "invalid URL") from exc

        async with self._client_factory() as client:
            outcome, resp, payload = await self._get(client, url, self._headers())
            if outcome is FetchOutcome.OK:
                return self._to_document(url, resp, payload)
            if outcome is FetchOutcome.UNAVAILABLE:
                raise DocumentUnavailable(url, f"HTTP {resp.status_code}")

            logger.info("Challenge page at %s (HTTP %d); priming cookies from %s", url, resp.status_code, origin)
            return await self._fetch_primed(client, url, origin)

    async def _fetch_primed(self, client: httpx.AsyncClient, url: str, origin_base: str) -> FetchedDocument:
        try:
            # Only the Set-Cookie headers matter; the page body is never read.
            async with client.stream(
                "GET", origin_base + "/", headers=self._headers(accept=PAGE_ACCEPT), follow_redirects=True
            ):
                pass
        except REQUEST_ERRORS as exc:
            logger.warning("Cookie priming request to %s failed: %s", origin_base, exc)

        outcome, resp, payload = await self._get(client, url, self._headers(referer=origin_base + "/"))
        if outcome is FetchOutcome.OK:
            return self._to_document(url, resp, payload)
        if outcome is FetchOutcome.BLOCKED:
            raise DocumentUnavailable(url, "challenge page persisted after cookie priming")
        raise DocumentUnavailable(url, f"HTTP {resp.status_code} after cookie priming")
