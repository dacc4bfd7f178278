from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.container import Services
from core.errors import CacheError, NotFoundError
from core.job_store import JobStatus
from router.deps import get_services
from schemas.insights import InsightsResponse
from schemas.upload import UploadResponse

router = APIRouter(prefix="/insights", tags=["insights"])

@router.get("/{job_id}", response_model=InsightsResponse, responses={202: {"model": UploadResponse}})
async def get_insights(job_id: str, services: Services = Depends(get_services)):
    """
    Cached insights for a completed job; 202 with the current status otherwise.
    """
    job = await services.jobs.get(job_id)
    if job is None:
        raise NotFoundError(f"Job with ID {job_id} not found")

    if job.status != JobStatus.COMPLETED:
        message = f"Job is {job.status.value}"
        if job.error:
            message = f"{message}: {job.error}"
        return JSONResponse(
            status_code=202,
            content=UploadResponse(job_id=job_id, status=job.status.value, message=message).model_dump(),
        )

    insights = await services.orchestrator.get_insights(job_id)
    if insights is None:
        # Cache entry expired, build it again
        await services.orchestrator.process(job_id)
        insights = await services.orchestrator.get_insights(job_id)
        if insights is None:
            raise CacheError("Failed to generate insights")

    return InsightsResponse(
        job_id=job_id,
        status=JobStatus.COMPLETED.value,
        message="Job completed successfully",
        insights=insights,
    )
