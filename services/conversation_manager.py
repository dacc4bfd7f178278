import logging
from typing import Optional

from core.conversation_store import ConversationStore
from core.data_loader import load_job_frame, schema_snapshot
from core.errors import CapabilityError, ExecutionError, TranslationError
from core.object_storage import ObjectStorage
from schemas.conversation import ConversationContext, QueryRequest, QueryResponse
from schemas.query import QueryIntent
from services.nl_capability import CapabilityRequest, NLCapability
from services.query_executor import QueryExecutor, to_records
from services.query_translator import QueryTranslator
from services.visualization import synthesize

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE = "Here are the results for your query."
EMPTY_RESPONSE = "No data found for your query."


class ConversationManager:
    """Owns conversation contexts and runs translate -> execute -> respond"""

    def __init__(
        self,
        store: ConversationStore,
        storage: ObjectStorage,
        bucket: str,
        translator: QueryTranslator,
        executor: QueryExecutor,
        capability: Optional[NLCapability] = None,
        summary_timeout: float = 30.0,
    ):
        self.store = store
        self.storage = storage
        self.bucket = bucket
        self.translator = translator
        self.executor = executor
        self.capability = capability
        self.summary_timeout = summary_timeout

    async def resolve(self, conversation_id: Optional[str], job_id: str) -> ConversationContext:
        if conversation_id:
            context = await self.store.get(conversation_id)
            if context is not None:
                logger.info("Found existing conversation: %s", conversation_id)
                return context
            logger.warning("Conversation ID not found: %s, creating new", conversation_id)
        return await self.create_context(job_id)

    async def create_context(self, job_id: str) -> ConversationContext:
        """New context with a schema snapshot read straight from the source file"""
        df = await load_job_frame(self.storage, job_id, self.bucket)
        metadata = schema_snapshot(df)
        context = ConversationContext(job_id=job_id, dataset_metadata=metadata)
        await self.store.store(context)
        logger.info("Created conversation %s for job %s: %d columns, %d rows",
                    context.id, job_id, len(metadata.columns), metadata.row_count)
        return context

    async def process_query(self, request: QueryRequest) -> QueryResponse:
        logger.info("Processing query: %s", request.query)
        context = await self.resolve(request.conversation_id, request.job_id)
        response = await self._answer(request.query, context)
        context.add_turn(request.query, response.response)
        await self.store.store(context)
        return response

    async def _answer(self, text: str, context: ConversationContext) -> QueryResponse:
        try:
            structured_query = await self.translator.translate(text, context)
        except TranslationError as e:
            logger.error("Failed to translate query: %s", e)
            return QueryResponse(
                conversation_id=context.id,
                response=f"I couldn't understand your query: {e.message}",
            )

        try:
            df = await self.executor.execute(structured_query, context.job_id)
        except ExecutionError as e:
            logger.error("Failed to execute query: %s", e)
            return QueryResponse(
                conversation_id=context.id,
                response=f"I couldn't execute your query: {e.message}",
            )

        if df.empty:
            return QueryResponse(
                conversation_id=context.id,
                response=EMPTY_RESPONSE,
                data={"result": "empty"},
            )

        records = to_records(df)
        visualization = None
        if structured_query.intent is QueryIntent.VISUALIZE:
            visualization = synthesize(records)

        payload = {
            "query": text,
            "intent": structured_query.intent.value,
            "result_sample": records[0] if records else {},
            "result_columns": [str(c) for c in df.columns],
            "result_row_count": len(df),
        }
        return QueryResponse(
            conversation_id=context.id,
            response=await self._compose_response(payload),
            data=records,
            visualization_data=visualization,
        )

    async def _compose_response(self, payload) -> str:
        if self.capability is None:
            return DEFAULT_RESPONSE
        try:
            summary = await self.capability.summarize(
                CapabilityRequest(payload=payload, timeout=self.summary_timeout)
            )
        except CapabilityError as e:
            logger.error("AI service failed to generate summary: %s", e)
            return DEFAULT_RESPONSE
        return summary.summary or DEFAULT_RESPONSE
