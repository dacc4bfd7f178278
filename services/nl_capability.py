import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from groq import Groq, GroqError
from pydantic import ValidationError as PydanticValidationError

from config.settings import AISettings
from core.errors import CapabilityError
from schemas.insights import AISummary

logger = logging.getLogger(__name__)


@dataclass
class CapabilityRequest:
    """A single call to the NL capability, with its own time budget"""
    payload: Dict[str, Any]
    timeout: float
    created_at: float = field(default_factory=time.monotonic)

    @property
    def deadline(self) -> float:
        return self.created_at + self.timeout

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())


class NLCapability(Protocol):
    async def summarize(self, request: CapabilityRequest) -> AISummary: ...

    async def translate_query(self, request: CapabilityRequest) -> Dict[str, Any]: ...


SUMMARY_SYSTEM_PROMPT = (
    "You are a data analysis assistant that helps interpret data insights and recommend "
    "visualizations. Provide concise, business-focused analysis."
)

TRANSLATION_SYSTEM_PROMPT = (
    "You translate questions about a tabular dataset into structured queries. "
    "Reply with a single JSON object and nothing else."
)


class GroqCapability:
    """NL capability backed by the Groq chat completions API"""

    def __init__(self, client: Groq, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, ai: AISettings) -> Optional["GroqCapability"]:
        if not ai.enabled:
            logger.warning("AI__GROQ_API_KEY is not set, AI service will not be available")
            return None
        logger.info("AI service initialized with model %s", ai.model)
        # No retries: callers fall back to templated output instead
        return cls(Groq(api_key=ai.groq_api_key, max_retries=0), ai.model)

    def _summary_prompt(self, payload: Dict[str, Any]) -> str:
        return f"""
        Here is a JSON object containing data insights from a CSV file analysis:

        {json.dumps(payload, default=str)}

        Based on this data, please provide:
        1. A concise summary of the dataset (2-3 sentences)
        2. 3-5 key business-relevant insights from the data
        3. 3-5 actionable recommendations with their rationale
        4. 3-5 recommended visualization types with titles, descriptions, and relevant columns

        Format your response as a JSON object with the following structure:
        {{
            "summary": "A brief summary of the dataset",
            "key_insights": ["Insight 1", "Insight 2"],
            "actionable_recommendations": [
                {{"recommendation": "Do X", "rationale": "Because Y"}}
            ],
            "visualization_recommendations": [
                {{
                    "chart_type": "bar_chart",
                    "title": "Distribution of Values",
                    "description": "Shows the distribution of values across categories",
                    "columns": ["column1", "column2"]
                }}
            ]
        }}
        """

    def _translation_prompt(self, payload: Dict[str, Any]) -> str:
        return f"""
        Translate "current_query" into a structured query for the dataset described below.
        Use the conversation history to resolve follow-up questions.

        {json.dumps(payload, default=str)}

        Requirements:
        1. "intent" is one of: Aggregate, Filter, Sort, Describe, Visualize.
        2. "columns" only contains column names from the dataset.
        3. Each operation has a "type" (Mean, Sum, Count, GroupBy, SortBy, Filter) and a "column".
        4. Filter operations also have "operator" (=, !=, >, <, >=, <=) and "value" (as a string).
        5. SortBy operations also have "ascending" (true or false).
        6. Return ONLY the JSON object, shaped like the "structured_query" of the examples.
        """

    async def _complete(self, system_prompt: str, prompt: str, request: CapabilityRequest) -> Dict[str, Any]:
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.chat.completions.create,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    model=self.model,
                    temperature=0.1,
                    response_format={"type": "json_object"},
                    timeout=request.remaining(),
                ),
                timeout=request.remaining(),
            )
        except asyncio.TimeoutError as e:
            raise CapabilityError(f"AI request timed out after {request.timeout:g} seconds") from e
        except GroqError as e:
            raise CapabilityError(f"AI request failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise CapabilityError("Could not extract content from AI response") from e

        # Sanitize (remove markdown if the model adds it)
        cleaned = (content or "").replace("```json", "").replace("```", "").strip()
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise CapabilityError(f"Failed to parse AI response as JSON: {e}") from e
        if not isinstance(data, dict):
            raise CapabilityError("AI response is not a JSON object")
        return data

    async def summarize(self, request: CapabilityRequest) -> AISummary:
        data = await self._complete(SUMMARY_SYSTEM_PROMPT, self._summary_prompt(request.payload), request)
        try:
            return AISummary.model_validate(data)
        except PydanticValidationError as e:
            raise CapabilityError(f"Failed to parse AI summary: {e}") from e

    async def translate_query(self, request: CapabilityRequest) -> Dict[str, Any]:
        return await self._complete(
            TRANSLATION_SYSTEM_PROMPT, self._translation_prompt(request.payload), request
        )
