from pydantic import BaseModel, Field
from typing import List, Literal

class ChartSpec(BaseModel):
    """Bar chart: one value per label"""
    type: Literal["bar"] = "bar"
    label: str
    labels: List[str] = Field(default_factory=list)
    values: List[float] = Field(default_factory=list)

class TableSpec(BaseModel):
    type: Literal["table"] = "table"
    columns: List[str] = Field(default_factory=list)
    rows: List[List[str]] = Field(default_factory=list)
