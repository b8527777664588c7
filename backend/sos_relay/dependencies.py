import secrets

from fastapi import Header, HTTPException

from sos_relay.config import settings
from sos_relay.services.pipeline_service import RelayPipeline, relay_pipeline


async def require_api_key(x_api_key: str | None = Header(None)):
    if not settings.inbound_api_key:
        return None
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.inbound_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key


def get_pipeline() -> RelayPipeline:
    return relay_pipeline
