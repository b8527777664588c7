import logging

import httpx

from sos_relay.config import Settings, settings
from sos_relay.errors import RelayError
from sos_relay.models import DispatchSummary, DocumentRef, FetchedDocument, JobState, SearchJob
from sos_relay.services.callback_service import CallbackSender
from sos_relay.services.credential_service import CredentialProvider
from sos_relay.services.dispatch_service import RelayDispatcher
from sos_relay.services.fetch_service import DocumentFetcher
from sos_relay.services.search_service import SearchPoller
from sos_relay.utils.filenames import filename_from_url

logger = logging.getLogger(__name__)


class RelayPipeline:
    """Wires the poller, fetcher, dispatcher and callbacks for one process.

    Only the credential provider outlives a job; HTTP clients are opened
    per job (API calls) and per document (downloads).
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport
        self.credentials = CredentialProvider(settings)
        self.fetcher = DocumentFetcher(settings, client_factory=self._download_client)

    def _api_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport)

    def _download_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            max_redirects=self.settings.download_max_redirects,
            timeout=self.settings.download_timeout_seconds,
        )

    def _dispatcher(self, client: httpx.AsyncClient) -> RelayDispatcher:
        return RelayDispatcher(
            self.fetcher,
            CallbackSender(client, self.settings),
            self.settings,
            refresh_credential=lambda: self.credentials.acquire(client),
        )

    async def run_job(self, job: SearchJob) -> DispatchSummary | None:
        """Poll, then dispatch. Fatal errors are logged; nobody is waiting on the result."""
        logger.info("Job %s state=%s record=%s", job.job_id, JobState.RECEIVED.value, job.record_id)
        try:
            async with self._api_client() as client:
                resolved = await SearchPoller(client, self.settings).poll(job)
                state = JobState.POLL_EXHAUSTED if resolved.exhausted else JobState.RESOLVED
                logger.info("Job %s state=%s after %d attempt(s)", job.job_id, state.value, resolved.attempts)

                credential = await self.credentials.current(client)
                logger.info("Job %s state=%s", job.job_id, JobState.DISPATCHING.value)
                summary = await self._dispatcher(client).dispatch(job, resolved, credential)
        except RelayError:
            logger.exception("Job %s state=%s record=%s", job.job_id, JobState.FAILED.value, job.record_id)
            return None

        logger.info(
            "Job %s state=%s delivered=%d url_only=%d dropped=%d profile_links=%d/%d",
            job.job_id, JobState.DONE.value, summary.delivered, summary.url_only, summary.dropped,
            summary.profile_links_sent, summary.profile_links_sent + summary.profile_links_failed,
        )
        return summary

    async def relay_documents(self, record_id: str, urls: list[str]) -> DispatchSummary:
        documents = [DocumentRef(name=filename_from_url(url), source_url=url) for url in urls]
        async with self._api_client() as client:
            credential = await self.credentials.current(client)
            summary = await self._dispatcher(client).relay_documents(record_id, documents, credential)
        logger.info(
            "Batch for record %s: delivered=%d url_only=%d dropped=%d",
            record_id, summary.delivered, summary.url_only, summary.dropped,
        )
        return summary

    async def fetch_file(self, url: str) -> FetchedDocument:
        return await self.fetcher.fetch(url)


relay_pipeline = RelayPipeline(settings)
