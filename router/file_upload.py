import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from core.container import Services
from core.errors import NotFoundError, QueueFullError
from core.file_manager import read_upload_securely
from core.job_store import JobRecord, JobStatus
from router.deps import get_services
from schemas.upload import UploadResponse
from utils.file_validator import validate_csv_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

@router.post("", response_model=UploadResponse)
async def upload_csv(
    file: Optional[UploadFile] = File(None),
    services: Services = Depends(get_services),
):
    """
    Upload a CSV file for analysis.
    The file is stored, a job is created and queued for the background worker.
    """
    settings = services.settings
    content = b""
    filename = None
    if file is not None:
        filename = file.filename
        content = await read_upload_securely(file, settings.files.max_file_size, settings.files.chunk_size)

    # 1. Validate before anything is stored
    validate_csv_upload(filename, content, settings.files.allowed_extensions)

    # 2. Store the raw file under a key derived from the job id
    job_id = str(uuid.uuid4())
    file_key = f"uploads/{job_id}.csv"
    await services.storage.put(file_key, content)

    # 3. Create and queue the job
    await services.jobs.create(settings.storage.default_owner, file_key, job_id=job_id)
    try:
        services.worker.enqueue(job_id)
    except QueueFullError as e:
        logger.error("Failed to queue job %s: %s", job_id, e)
        await services.jobs.set_status(job_id, JobStatus.FAILED, error=e.message)
        raise

    status = JobStatus.QUEUED.value
    return UploadResponse(
        job_id=job_id,
        status=status,
        message=f"File uploaded and job queued for processing. Status: {status}",
    )

@router.get("/status/{job_id}", response_model=JobRecord)
async def get_upload_status(job_id: str, services: Services = Depends(get_services)):
    """
    Check the processing status of an uploaded file
    """
    job = await services.jobs.get(job_id)
    if not job:
        raise NotFoundError(f"Job with ID {job_id} not found")
    return job
