import asyncio
import uuid
from typing import Dict, Optional, List, Protocol
from enum import Enum
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from core.errors import NotFoundError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

# Define clear states for the frontend to react to
class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

# Define the structure of a single job record
class JobRecord(BaseModel):
    id: str
    owner_id: str
    file_key: str
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    error: Optional[str] = None


class JobStore(Protocol):
    async def create(self, owner_id: str, file_key: str, job_id: Optional[str] = None) -> str: ...

    async def get(self, job_id: str) -> Optional[JobRecord]: ...

    async def set_status(self, job_id: str, status: JobStatus, error: Optional[str] = None) -> None: ...


class InMemoryJobStore:
    """Job records kept in a process-local dict guarded by an asyncio lock"""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._jobs: Dict[str, JobRecord] = {}

    async def create(self, owner_id: str, file_key: str, job_id: Optional[str] = None) -> str:
        """Register a new queued job and return its id"""
        job_id = job_id or str(uuid.uuid4())
        async with self._lock:
            self._jobs[job_id] = JobRecord(id=job_id, owner_id=owner_id, file_key=file_key)
        return job_id

    async def get(self, job_id: str) -> Optional[JobRecord]:
        """Return a copy so callers cannot mutate the stored record"""
        async with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    async def set_status(self, job_id: str, status: JobStatus, error: Optional[str] = None):
        """Update the state of a job"""
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job with ID {job_id} not found")
            job.status = status
            job.updated_at = _utcnow()
            if error is not None:
                job.error = error

    async def list_jobs(self) -> List[JobRecord]:
        """List all jobs (for admin/debug)"""
        async with self._lock:
            return [job.model_copy() for job in self._jobs.values()]
