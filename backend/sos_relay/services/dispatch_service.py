import asyncio
import base64
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

from sos_relay.config import Settings
from sos_relay.errors import DocumentUnavailable, RelayError
from sos_relay.models import Credential, DispatchSummary, DocumentRef, ResolvedSearch, SearchJob
from sos_relay.services.callback_service import CallbackSender, EndpointKind
from sos_relay.services.fetch_service import DocumentFetcher
from sos_relay.services.profile_service import build_profile_payload
from sos_relay.utils.filenames import compose_filename
from sos_relay.utils.hashing import sha256_bytes

logger = logging.getLogger(__name__)


class RelayDispatcher:
    """Relays one resolved search to the CRM.

    The record-level callback goes first and is fatal on failure. After it,
    every profile link and document becomes an independent work item on a
    bounded pool; an item that fails is counted in the summary and never
    stops its siblings. Each document yields exactly one file callback:
    with content when the download worked, URL-only when it did not.
    """

    def __init__(
        self,
        fetcher: DocumentFetcher,
        sender: CallbackSender,
        settings: Settings,
        refresh_credential: Callable[[], Awaitable[Credential]] | None = None,
    ):
        self._fetcher = fetcher
        self._sender = sender
        self._settings = settings
        self._refresh_credential = refresh_credential
        self._credential: Credential | None = None

    async def _send(self, endpoint_kind: EndpointKind, payload: dict, record_id: str):
        try:
            await self._sender.send(endpoint_kind, payload, self._credential, record_id=record_id)
        except RelayError as exc:
            if getattr(exc, "status_code", None) != 401 or self._refresh_credential is None:
                raise
            # Token rejected: fetch a new one and resend this payload once.
            logger.info("CRM rejected credential on %s callback; re-acquiring", endpoint_kind.value)
            self._credential = await self._refresh_credential()
            await self._sender.send(endpoint_kind, payload, self._credential, record_id=record_id)

    async def _run_pool(self, items: Iterable[Callable[[], Awaitable[None]]]):
        semaphore = asyncio.Semaphore(max(1, self._settings.max_workers))

        async def worker(item):
            async with semaphore:
                await item()

        results = await asyncio.gather(*(worker(item) for item in items), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Relay item failed: %r", result, exc_info=result)

    async def dispatch(self, job: SearchJob, resolved: ResolvedSearch, credential: Credential) -> DispatchSummary:
        self._credential = credential
        summary = DispatchSummary()

        await self._send(EndpointKind.RECORD, resolved.payload, job.record_id)
        logger.info(
            "Job %s relayed search payload for record %s (%d result entries)",
            job.job_id, job.record_id, len(resolved.records),
        )

        items = []
        for record in resolved.records:
            if record.profile_url:
                items.append(lambda url=record.profile_url: self._relay_profile(job, url, summary))
            for doc in record.documents:
                items.append(lambda doc=doc: self._relay_document(job.record_id, job.company_name, doc, summary))
        await self._run_pool(items)
        return summary

    async def relay_documents(
        self, record_id: str, documents: list[DocumentRef], credential: Credential, company_name: str | None = None
    ) -> DispatchSummary:
        """Fetch-and-relay a batch of documents without a search round."""
        self._credential = credential
        summary = DispatchSummary()
        await self._run_pool(
            [lambda doc=doc: self._relay_document(record_id, company_name, doc, summary) for doc in documents]
        )
        return summary

    async def _relay_profile(self, job: SearchJob, url: str, summary: DispatchSummary):
        generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        payload = build_profile_payload(
            self._settings.profile_link_mode, job.company_name, job.jurisdiction, url, generated_at
        )
        try:
            await self._send(EndpointKind.FILE, payload, job.record_id)
        except RelayError as exc:
            summary.profile_links_failed += 1
            logger.warning("Profile link callback failed for %s: %s", url, exc)
            return
        summary.profile_links_sent += 1

    async def _relay_url_only(self, record_id: str, company_name: str | None, doc: DocumentRef, summary: DispatchSummary):
        payload = {
            "fileName": compose_filename(company_name, doc.name, None, doc.source_url),
            "sourceUrl": doc.source_url,
            "urlOnly": True,
        }
        try:
            await self._send(EndpointKind.FILE, payload, record_id)
        except RelayError as exc:
            summary.dropped += 1
            logger.warning("URL-only callback failed for %s: %s", doc.source_url, exc)
            return
        summary.url_only += 1

    async def _relay_document(self, record_id: str, company_name: str | None, doc: DocumentRef, summary: DispatchSummary):
        try:
            fetched = await self._fetcher.fetch(doc.source_url)
        except DocumentUnavailable as exc:
            logger.warning("Falling back to URL-only callback for %s: %s", doc.source_url, exc.reason)
            await self._relay_url_only(record_id, company_name, doc, summary)
            return
        except Exception:
            # Whatever broke the download, the document still gets its one callback.
            logger.exception("Unexpected error fetching %s; falling back to URL-only callback", doc.source_url)
            await self._relay_url_only(record_id, company_name, doc, summary)
            return

        content_type = fetched.content_type or self._settings.default_content_type
        payload = {
            "fileName": compose_filename(company_name, doc.name, content_type, doc.source_url),
            "contentType": content_type,
            "base64Data": base64.b64encode(fetched.payload).decode("ascii"),
            "sourceUrl": doc.source_url,
        }
        try:
            await self._send(EndpointKind.FILE, payload, record_id)
        except RelayError as exc:
            summary.dropped += 1
            logger.warning("File callback failed for %s: %s", doc.source_url, exc)
            return
        summary.delivered += 1
        logger.info(
            "Delivered %s (%d bytes, sha256=%s)", payload["fileName"], len(fetched.payload), sha256_bytes(fetched.payload)
        )
