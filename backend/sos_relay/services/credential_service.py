import logging

import httpx

from sos_relay.config import Settings
from sos_relay.errors import CredentialError
from sos_relay.models import Credential

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Holds the process-wide CRM bearer credential.

    The credential is fetched lazily and replaced wholesale on every
    acquisition. Concurrent jobs may both acquire; the last one wins, and
    tokens issued earlier stay valid for whoever holds them.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._credential: Credential | None = None

    @property
    def cached(self) -> Credential | None:
        return self._credential

    async def current(self, client: httpx.AsyncClient) -> Credential:
        if self._credential is None:
            return await self.acquire(client)
        return self._credential

    async def acquire(self, client: httpx.AsyncClient) -> Credential:
        s = self._settings
        form = {
            "grant_type": "password",
            "client_id": s.client_id,
            "client_secret": s.client_secret,
            "username": s.username,
            "password": s.password,
        }
        try:
            resp = await client.post(
                s.resolved_token_endpoint,
                data=form,
                headers={"Accept": "application/json"},
                timeout=s.token_timeout_seconds,
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise CredentialError(f"Token endpoint answered {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise CredentialError(f"Token exchange failed: {exc}") from exc

        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise CredentialError("Token endpoint response had no access_token")

        self._credential = Credential(token=token, instance_url=body.get("instance_url"))
        logger.info("Acquired CRM credential from %s", s.resolved_token_endpoint)
        return self._credential
