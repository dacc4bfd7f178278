import logging

from fastapi import APIRouter, Depends

from core.container import Services
from core.errors import ValidationError
from router.deps import get_services
from schemas.conversation import QueryRequest, QueryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversation", tags=["conversation"])

@router.post("/query", response_model=QueryResponse)
async def query_endpoint(request: QueryRequest, services: Services = Depends(get_services)):
    """
    Answer a natural-language question about an uploaded dataset.
    Pass the returned conversation_id back for follow-up questions.
    """
    if not request.query.strip():
        raise ValidationError("Query cannot be empty")

    logger.info("Received query: %s", request.query)
    return await services.conversations.process_query(request)
