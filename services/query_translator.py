import logging
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from core.errors import CapabilityError, TranslationError
from schemas.conversation import ConversationContext
from schemas.query import ColumnOperation, Count, Mean, QueryIntent, StructuredQuery, Sum
from services.nl_capability import CapabilityRequest, NLCapability

logger = logging.getLogger(__name__)

_operation_adapter = TypeAdapter(ColumnOperation)

EXAMPLES = [
    {
        "query": "What's the average of column1?",
        "structured_query": {
            "intent": "Aggregate",
            "columns": ["column1"],
            "operations": [{"type": "Mean", "column": "column1"}],
        },
    },
    {
        "query": "Show me column1 and column2 where column1 > 10",
        "structured_query": {
            "intent": "Filter",
            "columns": ["column1", "column2"],
            "operations": [{"type": "Filter", "column": "column1", "operator": ">", "value": "10"}],
        },
    },
    {
        "query": "What is the total of column2 for each column3?",
        "structured_query": {
            "intent": "Aggregate",
            "columns": ["column2", "column3"],
            "operations": [
                {"type": "GroupBy", "column": "column3"},
                {"type": "Sum", "column": "column2"},
            ],
        },
    },
]

# Checked in order, first hit wins
KEYWORD_RULES = [
    (("average", "mean"), Mean),
    (("sum",), Sum),
    (("count",), Count),
]


class QueryTranslator:
    """Natural language -> StructuredQuery, through the NL capability or keyword rules"""

    def __init__(
        self,
        capability: Optional[NLCapability] = None,
        timeout: float = 15.0,
        history_turns: int = 5,
    ):
        self.capability = capability
        self.timeout = timeout
        self.history_turns = history_turns

    async def translate(self, text: str, context: ConversationContext) -> StructuredQuery:
        if self.capability is not None:
            logger.info("Using AI service to translate query: %s", text)
            request = CapabilityRequest(payload=self.build_payload(text, context), timeout=self.timeout)
            try:
                reply = await self.capability.translate_query(request)
            except CapabilityError as e:
                raise TranslationError(f"AI translation failed: {e.message}") from e
            return self.parse_reply(reply, context.dataset_metadata.columns)

        logger.info("No AI service available, using rule-based translation for query: %s", text)
        return self.rule_based(text, context)

    def build_payload(self, text: str, context: ConversationContext) -> Dict[str, Any]:
        metadata = context.dataset_metadata
        history = context.history[-self.history_turns:] if self.history_turns > 0 else []
        return {
            "dataset": {
                "columns": metadata.columns,
                "data_types": metadata.data_types,
                "row_count": metadata.row_count,
            },
            "conversation_history": [
                {"query": turn.query, "response": turn.response} for turn in history
            ],
            "current_query": text,
            "examples": EXAMPLES,
        }

    def parse_reply(self, reply: Any, known_columns: List[str]) -> StructuredQuery:
        """Validate the capability's JSON reply against the intent enum and the dataset schema"""
        if not isinstance(reply, dict):
            raise TranslationError("AI reply is not a JSON object")
        if isinstance(reply.get("structured_query"), dict):
            reply = reply["structured_query"]

        intent = self._parse_intent(reply.get("intent"))

        columns = reply.get("columns") or []
        if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
            raise TranslationError("'columns' must be a list of column names")

        raw_operations = reply.get("operations") or []
        if not isinstance(raw_operations, list):
            raise TranslationError("'operations' must be a list")

        operations = [self._parse_operation(raw) for raw in raw_operations]

        known = set(known_columns)
        referenced = list(columns) + [op.column for op in operations]
        unknown = [c for c in referenced if c not in known]
        if unknown:
            raise TranslationError(f"Unknown column(s): {', '.join(dict.fromkeys(unknown))}")

        return StructuredQuery(intent=intent, columns=columns, operations=operations)

    def _parse_intent(self, value: Any) -> QueryIntent:
        if isinstance(value, str):
            for intent in QueryIntent:
                if intent.value.lower() == value.strip().lower():
                    return intent
        raise TranslationError(f"Unknown intent: {value!r}")

    def _parse_operation(self, raw: Any):
        if not isinstance(raw, dict):
            raise TranslationError(f"Invalid operation: {raw!r}")
        raw = dict(raw)
        # values are compared as text later on
        if "value" in raw and raw["value"] is not None and not isinstance(raw["value"], str):
            raw["value"] = str(raw["value"])
        try:
            return _operation_adapter.validate_python(raw)
        except PydanticValidationError as e:
            raise TranslationError(f"Invalid operation {raw!r}: {e.errors()[0]['msg']}") from e

    def rule_based(self, text: str, context: ConversationContext) -> StructuredQuery:
        query = text.lower()
        columns = context.dataset_metadata.columns
        first_column = columns[0] if columns else "column1"

        for keywords, operation in KEYWORD_RULES:
            if any(keyword in query for keyword in keywords):
                return StructuredQuery(
                    intent=QueryIntent.AGGREGATE,
                    columns=[first_column],
                    operations=[operation(column=first_column)],
                )

        return StructuredQuery(intent=QueryIntent.DESCRIBE, columns=list(columns), operations=[])
