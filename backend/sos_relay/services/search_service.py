import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from sos_relay.config import Settings
from sos_relay.errors import UpstreamSearchError
from sos_relay.models import (
    BusinessRecord,
    Complete,
    DocumentRef,
    JobState,
    Pending,
    ResolvedSearch,
    SearchJob,
)
from sos_relay.utils.filenames import filename_from_url

logger = logging.getLogger(__name__)


def _parse_records(results: list) -> tuple[BusinessRecord, ...]:
    records = []
    for entry in results:
        if not isinstance(entry, dict):
            continue
        profile_url = entry.get("url") if isinstance(entry.get("url"), str) else None
        documents = []
        for doc in entry.get("documents") or []:
            if not isinstance(doc, dict):
                continue
            url = doc.get("url")
            if not isinstance(url, str) or not url:
                continue
            name = doc.get("name") if isinstance(doc.get("name"), str) and doc.get("name") else filename_from_url(url)
            documents.append(DocumentRef(name=name, source_url=url))
        records.append(BusinessRecord(profile_url=profile_url or None, documents=tuple(documents)))
    return tuple(records)


def classify_search_response(payload: dict) -> Pending | Complete:
    """Result entries take priority over a continuation token in the same payload."""
    results = payload.get("results")
    if isinstance(results, list) and results:
        return Complete(records=_parse_records(results), payload=payload)
    token = payload.get("retryId")
    if token:
        return Pending(continuation_token=str(token), payload=payload)
    return Complete(records=(), payload=payload)


class SearchPoller:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._settings = settings
        self._sleep = sleep

    def _params(self, job: SearchJob, continuation_token: str | None) -> dict[str, str]:
        if continuation_token is not None:
            return {"retryId": continuation_token}
        return {
            "searchQuery": job.company_name,
            self._settings.search_jurisdiction_param: job.jurisdiction,
            "liveData": "true" if self._settings.search_live_data else "false",
        }

    async def _request(self, job: SearchJob, continuation_token: str | None) -> dict:
        s = self._settings
        try:
            resp = await self._client.get(
                s.search_api_endpoint,
                params=self._params(job, continuation_token),
                headers={"x-api-key": s.search_api_key, "Accept": "application/json"},
                timeout=s.search_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise UpstreamSearchError(f"Search API request failed: {exc!r}") from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.is_success:
            if not isinstance(payload, dict):
                raise UpstreamSearchError("Search API returned a non-object body")
            return payload
        # A deferred search may come back with an error status but a retry body.
        if isinstance(payload, dict) and payload.get("retryId") and not payload.get("results"):
            return payload
        raise UpstreamSearchError(f"Search API answered {resp.status_code}")

    async def poll(self, job: SearchJob) -> ResolvedSearch:
        max_attempts = max(1, self._settings.poll_max_attempts)
        continuation_token = None
        attempt = 0
        while True:
            attempt += 1
            logger.info(
                "Job %s state=%s attempt=%d/%d continuation=%s",
                job.job_id, JobState.POLLING.value, attempt, max_attempts, continuation_token is not None,
            )
            payload = await self._request(job, continuation_token)

            outcome = classify_search_response(payload)
            if isinstance(outcome, Complete):
                return ResolvedSearch(payload=payload, records=outcome.records, attempts=attempt)

            if attempt >= max_attempts:
                logger.warning(
                    "Job %s search still pending after %d attempts; relaying last payload",
                    job.job_id, attempt,
                )
                return ResolvedSearch(payload=payload, attempts=attempt, exhausted=True)
            continuation_token = outcome.continuation_token
            await self._sleep(self._settings.poll_delay_seconds)
