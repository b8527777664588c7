import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends

from sos_relay.dependencies import get_pipeline, require_api_key
from sos_relay.models import SearchJob
from sos_relay.schemas.job import JobAccepted, JobCreate
from sos_relay.services.pipeline_service import RelayPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sos", tags=["jobs"], dependencies=[Depends(require_api_key)])


@router.post("/jobs", response_model=JobAccepted, status_code=202)
async def start_job(
    req: JobCreate,
    background_tasks: BackgroundTasks,
    pipeline: RelayPipeline = Depends(get_pipeline),
):
    """Accept a lookup and run it after responding. The job id is for logs only."""
    job = SearchJob(
        company_name=req.company_name,
        record_id=req.record_id,
        jurisdiction=req.jurisdiction,
        job_id=str(uuid.uuid4()),
    )
    logger.info("Queued job %s for record %s (%s, %s)", job.job_id, job.record_id, job.company_name, job.jurisdiction)
    background_tasks.add_task(pipeline.run_job, job)
    return JobAccepted(job_id=job.job_id, status="QUEUED")
