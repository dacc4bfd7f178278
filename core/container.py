from dataclasses import dataclass
from typing import Optional

import boto3

from config.settings import AppSettings
from core.conversation_store import ConversationStore
from core.insights_cache import InMemoryInsightsCache, InsightsCache
from core.job_store import InMemoryJobStore, JobStore
from core.object_storage import InMemoryObjectStorage, ObjectStorage, S3ObjectStorage
from services.conversation_manager import ConversationManager
from services.job_orchestrator import JobOrchestrator, JobWorker
from services.nl_capability import GroqCapability, NLCapability
from services.query_executor import QueryExecutor
from services.query_translator import QueryTranslator


@dataclass
class Services:
    settings: AppSettings
    storage: ObjectStorage
    jobs: JobStore
    cache: InsightsCache
    orchestrator: JobOrchestrator
    worker: JobWorker
    conversations: ConversationManager
    capability: Optional[NLCapability] = None


def build_storage(settings: AppSettings) -> ObjectStorage:
    if settings.storage.backend == "s3":
        return S3ObjectStorage(boto3.client("s3"), settings.storage.bucket)
    if settings.storage.backend == "memory":
        return InMemoryObjectStorage(settings.storage.storage_dir or None)
    raise ValueError(f"Unknown storage backend: {settings.storage.backend}")


def build_services(
    settings: AppSettings,
    storage: Optional[ObjectStorage] = None,
    jobs: Optional[JobStore] = None,
    cache: Optional[InsightsCache] = None,
    capability: Optional[NLCapability] = None,
) -> Services:
    """Wire every component; explicit arguments replace the configured backends"""
    storage = storage if storage is not None else build_storage(settings)
    jobs = jobs if jobs is not None else InMemoryJobStore()
    cache = cache if cache is not None else InMemoryInsightsCache()
    if capability is None:
        capability = GroqCapability.from_settings(settings.ai)

    bucket = settings.storage.bucket
    orchestrator = JobOrchestrator(
        storage=storage,
        jobs=jobs,
        cache=cache,
        bucket=bucket,
        capability=capability,
        insights_ttl=settings.cache.insights_ttl,
        summary_timeout=settings.ai.summary_timeout,
    )
    translator = QueryTranslator(
        capability=capability,
        timeout=settings.ai.translate_timeout,
        history_turns=settings.ai.history_turns,
    )
    conversations = ConversationManager(
        store=ConversationStore(),
        storage=storage,
        bucket=bucket,
        translator=translator,
        executor=QueryExecutor(storage, bucket),
        capability=capability,
        summary_timeout=settings.ai.summary_timeout,
    )
    return Services(
        settings=settings,
        storage=storage,
        jobs=jobs,
        cache=cache,
        orchestrator=orchestrator,
        worker=JobWorker(orchestrator, max_size=settings.queue.max_size),
        conversations=conversations,
        capability=capability,
    )
