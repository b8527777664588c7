import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sos_relay.config import settings
from sos_relay.routers import documents, jobs

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("sos_relay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.callback_base:
        logger.warning("SOS_RELAY_CALLBACK_BASE is not set; callbacks will use the token's instance_url.")
    if not settings.search_api_key:
        logger.warning("SOS_RELAY_SEARCH_API_KEY is not set; search calls will likely be rejected.")
    logger.info("Search API endpoint: %s", settings.search_api_endpoint)
    yield


app = FastAPI(
    title="SOS Relay",
    description="Relays business-registry lookups and their documents to CRM callbacks",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(jobs.router, prefix=settings.api_prefix)
app.include_router(documents.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
