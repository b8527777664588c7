import base64

from fastapi import APIRouter, Depends, HTTPException

from sos_relay.dependencies import get_pipeline, require_api_key
from sos_relay.errors import CredentialError, DocumentUnavailable
from sos_relay.schemas.document import (
    DocumentBatchRequest,
    DocumentBatchResponse,
    FileFetchRequest,
    FileFetchResponse,
)
from sos_relay.services.pipeline_service import RelayPipeline
from sos_relay.utils.hashing import sha256_bytes

router = APIRouter(prefix="/sos", tags=["documents"], dependencies=[Depends(require_api_key)])


@router.post("/documents", response_model=DocumentBatchResponse)
async def relay_documents(req: DocumentBatchRequest, pipeline: RelayPipeline = Depends(get_pipeline)):
    try:
        summary = await pipeline.relay_documents(req.record_id, req.documents)
    except CredentialError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return DocumentBatchResponse(
        processed=summary.total_documents,
        delivered=summary.delivered,
        url_only=summary.url_only,
        dropped=summary.dropped,
    )


@router.post("/files/fetch", response_model=FileFetchResponse)
async def fetch_file(req: FileFetchRequest, pipeline: RelayPipeline = Depends(get_pipeline)):
    """Download one file with the challenge-page handshake and return it instead of relaying it."""
    try:
        fetched = await pipeline.fetch_file(req.file_url)
    except DocumentUnavailable as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return FileFetchResponse(
        file_name=fetched.file_name,
        content_type=fetched.content_type or pipeline.settings.default_content_type,
        base64_data=base64.b64encode(fetched.payload).decode("ascii"),
        size_bytes=len(fetched.payload),
        sha256=sha256_bytes(fetched.payload),
    )
