import enum
import logging

import httpx

from sos_relay.config import Settings
from sos_relay.errors import CallbackDeliveryError
from sos_relay.models import Credential

logger = logging.getLogger(__name__)

CORRELATION_KEY = "requestId"


class EndpointKind(str, enum.Enum):
    RECORD = "record"
    FILE = "file"


class CallbackSender:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self._client = client
        self._settings = settings

    def endpoint_url(self, endpoint_kind: EndpointKind, credential: Credential) -> str:
        base = (self._settings.callback_base or credential.instance_url or "").rstrip("/")
        if not base:
            raise CallbackDeliveryError(endpoint_kind.value, "no callback base configured")
        if endpoint_kind is EndpointKind.RECORD:
            return base + self._settings.record_callback_path
        return base + self._settings.file_callback_path

    async def send(self, endpoint_kind: EndpointKind, payload: dict, credential: Credential, *, record_id: str):
        """POST one JSON payload, tagged with the correlation key, to the CRM."""
        url = self.endpoint_url(endpoint_kind, credential)
        body = {**payload, CORRELATION_KEY: record_id}
        try:
            resp = await self._client.post(
                url,
                json=body,
                headers={
                    "Authorization": f"Bearer {credential.token}",
                    "Content-Type": "application/json",
                },
                timeout=self._settings.callback_timeout_seconds,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise CallbackDeliveryError(endpoint_kind.value, repr(exc)) from exc

        if not resp.is_success:
            raise CallbackDeliveryError(endpoint_kind.value, f"HTTP {resp.status_code}", resp.status_code)
        logger.debug("Delivered %s callback for record %s", endpoint_kind.value, record_id)
