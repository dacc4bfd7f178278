import asyncio
import logging
import time
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from core.errors import CacheError, CapabilityError, NotFoundError, QueueFullError
from core.insight_generator import InsightGenerator
from core.insights_cache import InsightsCache
from core.job_store import JobStatus, JobStore
from core.object_storage import ObjectStorage
from schemas.insights import Insights
from services.nl_capability import CapabilityRequest, NLCapability

logger = logging.getLogger(__name__)


def insights_key(job_id: str) -> str:
    return f"insights:{job_id}"


class JobOrchestrator:
    """Drive a job: queued -> processing -> completed | failed"""

    def __init__(
        self,
        storage: ObjectStorage,
        jobs: JobStore,
        cache: InsightsCache,
        bucket: str,
        generator: Optional[InsightGenerator] = None,
        capability: Optional[NLCapability] = None,
        insights_ttl: int = 3600 * 24,
        summary_timeout: float = 30.0,
    ):
        self.storage = storage
        self.jobs = jobs
        self.cache = cache
        self.bucket = bucket
        self.generator = generator or InsightGenerator()
        self.capability = capability
        self.insights_ttl = insights_ttl
        self.summary_timeout = summary_timeout

    async def process(self, job_id: str):
        """
        Load the job's file, generate insights, cache them.
        Any failure marks the job failed and is re-raised.
        """
        logger.info("[Job-%s] Updating status to processing", job_id)
        await self.jobs.set_status(job_id, JobStatus.PROCESSING)

        try:
            job = await self.jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job with ID {job_id} not found")

            logger.info("[Job-%s] Downloading file %s from bucket %s", job_id, job.file_key, self.bucket)
            content = await self.storage.get(self.bucket, job.file_key)

            logger.info("[Job-%s] Generating insights (%d bytes)", job_id, len(content))
            started = time.perf_counter()
            insights = self.generator.generate_from_bytes(content)
            logger.info(
                "[Job-%s] Generated insights in %.2fs: %d rows, %d columns",
                job_id,
                time.perf_counter() - started,
                insights.data_summary.row_count,
                insights.data_summary.column_count,
            )

            insights.ai_analysis = await self._ai_analysis(job_id, insights)

            await self.cache_insights(job_id, insights)
        except Exception as e:
            logger.error("[Job-%s] Processing failed: %s", job_id, e)
            await self.jobs.set_status(job_id, JobStatus.FAILED, error=str(e))
            raise

        await self.jobs.set_status(job_id, JobStatus.COMPLETED)
        logger.info("[Job-%s] Successfully completed processing", job_id)

    async def _ai_analysis(self, job_id: str, insights: Insights):
        if self.capability is None:
            return None
        request = CapabilityRequest(
            payload=insights.model_dump(exclude={"ai_analysis"}),
            timeout=self.summary_timeout,
        )
        try:
            return await self.capability.summarize(request)
        except CapabilityError as e:
            logger.warning("[Job-%s] AI analysis unavailable: %s", job_id, e)
            return None

    async def cache_insights(self, job_id: str, insights: Insights):
        await self.cache.set_string(insights_key(job_id), insights.model_dump_json(), ttl=self.insights_ttl)
        logger.info("[Job-%s] Cached insights", job_id)

    async def get_insights(self, job_id: str) -> Optional[Insights]:
        raw = await self.cache.get_string(insights_key(job_id))
        if raw is None:
            return None
        try:
            return Insights.model_validate_json(raw)
        except PydanticValidationError as e:
            raise CacheError(f"Cached insights for job {job_id} could not be decoded: {e}") from e


class JobWorker:
    """Single consumer draining a bounded job queue, one job at a time"""

    def __init__(self, orchestrator: JobOrchestrator, max_size: int = 32):
        self.orchestrator = orchestrator
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self.processed = 0
        self._task: Optional[asyncio.Task] = None

    def enqueue(self, job_id: str):
        try:
            self.queue.put_nowait(job_id)
        except asyncio.QueueFull as e:
            raise QueueFullError("Job queue is full, please retry later") from e
        logger.info("[Job-%s] Queued for processing (%d waiting)", job_id, self.queue.qsize())

    async def run_once(self):
        job_id = await self.queue.get()
        started = time.perf_counter()
        try:
            await self.orchestrator.process(job_id)
        except Exception:
            logger.exception("[Job-%s] Failed after %.2fs", job_id, time.perf_counter() - started)
        else:
            logger.info("[Job-%s] Completed successfully in %.2fs", job_id, time.perf_counter() - started)
        finally:
            self.processed += 1
            self.queue.task_done()

    async def run(self):
        logger.info("Background worker started (queue capacity %d)", self.queue.maxsize)
        while True:
            await self.run_once()

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.warning("Background worker shut down (total jobs processed: %d)", self.processed)
