import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import Optional, Any, Dict, List, Union

from schemas.chart import ChartSpec, TableSpec


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationTurn(BaseModel):
    """A user query and the response it got"""
    query: str
    response: str
    timestamp: datetime = Field(default_factory=_utcnow)

class DatasetMetadata(BaseModel):
    """Schema snapshot of the dataset being queried"""
    columns: List[str] = Field(default_factory=list)
    row_count: int = 0
    data_types: Dict[str, str] = Field(default_factory=dict)

class ConversationContext(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_id: str
    history: List[ConversationTurn] = Field(default_factory=list)
    dataset_metadata: DatasetMetadata
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def add_turn(self, query: str, response: str):
        self.history.append(ConversationTurn(query=query, response=response))
        self.updated_at = _utcnow()

class QueryRequest(BaseModel):
    job_id: str
    query: str
    conversation_id: Optional[str] = None

class QueryResponse(BaseModel):
    conversation_id: str
    response: str
    data: Optional[Union[List[Dict[str, Any]], Dict[str, Any]]] = None
    visualization_data: Optional[Union[ChartSpec, TableSpec]] = None
