import uuid

import pytest

from core.errors import CacheError, CapabilityError, NotFoundError, ObjectNotFoundError, ParseError, QueueFullError
from core.insight_generator import InsightGenerator
from core.insights_cache import InMemoryInsightsCache
from core.job_store import InMemoryJobStore, JobStatus
from helpers import SALES_CSV, FakeCapability
from schemas.insights import AISummary
from services.job_orchestrator import JobOrchestrator, JobWorker, insights_key


@pytest.fixture
def jobs():
    return InMemoryJobStore()


@pytest.fixture
def cache():
    return InMemoryInsightsCache()


@pytest.fixture
def orchestrator(storage, jobs, cache):
    return JobOrchestrator(storage=storage, jobs=jobs, cache=cache, bucket="data-pipeline-bucket")


async def _upload(storage, jobs, content):
    job_id = str(uuid.uuid4())
    file_key = f"uploads/{job_id}.csv"
    await storage.put(file_key, content)
    await jobs.create("user123", file_key, job_id=job_id)
    return job_id


@pytest.mark.asyncio
async def test_process_caches_insights_and_completes(orchestrator, storage, jobs, cache):
    job_id = await _upload(storage, jobs, SALES_CSV)

    await orchestrator.process(job_id)

    assert (await jobs.get(job_id)).status == JobStatus.COMPLETED
    assert await cache.get_string(insights_key(job_id)) is not None
    insights = await orchestrator.get_insights(job_id)
    assert insights.data_summary.row_count == 5
    assert insights.ai_analysis is None


@pytest.mark.asyncio
async def test_cached_insights_decode_to_identical_object(orchestrator, storage, jobs):
    job_id = await _upload(storage, jobs, SALES_CSV)
    await orchestrator.process(job_id)

    expected = InsightGenerator().generate_from_bytes(SALES_CSV)
    assert await orchestrator.get_insights(job_id) == expected


@pytest.mark.asyncio
async def test_insights_are_cached_for_a_day(storage, jobs):
    now = [0.0]
    cache = InMemoryInsightsCache(clock=lambda: now[0])
    orchestrator = JobOrchestrator(storage=storage, jobs=jobs, cache=cache, bucket="b")
    job_id = await _upload(storage, jobs, SALES_CSV)
    await orchestrator.process(job_id)

    now[0] = 3600 * 24 - 1
    assert await orchestrator.get_insights(job_id) is not None
    now[0] = 3600 * 24 + 1
    assert await orchestrator.get_insights(job_id) is None


@pytest.mark.asyncio
async def test_missing_file_marks_job_failed(orchestrator, jobs):
    job_id = await jobs.create("user123", "uploads/nothing.csv")

    with pytest.raises(ObjectNotFoundError):
        await orchestrator.process(job_id)

    job = await jobs.get(job_id)
    assert job.status == JobStatus.FAILED
    assert "uploads/nothing.csv" in job.error


@pytest.mark.asyncio
async def test_malformed_csv_marks_job_failed(orchestrator, storage, jobs, cache):
    job_id = await _upload(storage, jobs, b"a,b\n1,2\n3,4,5,6\n")

    with pytest.raises(ParseError):
        await orchestrator.process(job_id)

    assert (await jobs.get(job_id)).status == JobStatus.FAILED
    assert await cache.get_string(insights_key(job_id)) is None


@pytest.mark.asyncio
async def test_unknown_job_is_not_found(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.process("does-not-exist")


@pytest.mark.asyncio
async def test_undecodable_cache_entry_is_cache_error(orchestrator, cache):
    await cache.set_string(insights_key("job"), "{not json")
    with pytest.raises(CacheError):
        await orchestrator.get_insights("job")


@pytest.mark.asyncio
async def test_ai_analysis_is_attached_when_available(storage, jobs, cache):
    capability = FakeCapability(summary=AISummary(summary="Fruit sales", key_insights=["apples sell"]))
    orchestrator = JobOrchestrator(
        storage=storage, jobs=jobs, cache=cache, bucket="b", capability=capability, summary_timeout=30
    )
    job_id = await _upload(storage, jobs, SALES_CSV)

    await orchestrator.process(job_id)

    insights = await orchestrator.get_insights(job_id)
    assert insights.ai_analysis.summary == "Fruit sales"
    request = capability.summarize_requests[0]
    assert request.timeout == 30
    assert request.payload["data_summary"]["row_count"] == 5


@pytest.mark.asyncio
async def test_ai_failure_does_not_fail_the_job(storage, jobs, cache):
    capability = FakeCapability(summary=CapabilityError("timed out"))
    orchestrator = JobOrchestrator(storage=storage, jobs=jobs, cache=cache, bucket="b", capability=capability)
    job_id = await _upload(storage, jobs, SALES_CSV)

    await orchestrator.process(job_id)

    assert (await jobs.get(job_id)).status == JobStatus.COMPLETED
    assert (await orchestrator.get_insights(job_id)).ai_analysis is None


@pytest.mark.asyncio
async def test_worker_rejects_when_queue_is_full(orchestrator):
    worker = JobWorker(orchestrator, max_size=2)
    worker.enqueue("a")
    worker.enqueue("b")
    with pytest.raises(QueueFullError):
        worker.enqueue("c")


@pytest.mark.asyncio
async def test_worker_keeps_draining_after_a_failure(orchestrator, storage, jobs):
    worker = JobWorker(orchestrator, max_size=4)
    bad = await jobs.create("user123", "uploads/missing.csv")
    good = await _upload(storage, jobs, SALES_CSV)
    worker.enqueue(bad)
    worker.enqueue(good)

    await worker.run_once()
    await worker.run_once()

    assert (await jobs.get(bad)).status == JobStatus.FAILED
    assert (await jobs.get(good)).status == JobStatus.COMPLETED
    assert worker.processed == 2
    assert worker.queue.empty()


@pytest.mark.asyncio
async def test_started_worker_processes_queued_jobs(orchestrator, storage, jobs):
    worker = JobWorker(orchestrator)
    job_id = await _upload(storage, jobs, SALES_CSV)
    worker.start()
    worker.enqueue(job_id)

    await worker.queue.join()
    await worker.stop()

    assert (await jobs.get(job_id)).status == JobStatus.COMPLETED
