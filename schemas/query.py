from enum import Enum
from typing import List, Literal, Union
from typing_extensions import Annotated
from pydantic import BaseModel, Field

class QueryIntent(str, Enum):
    AGGREGATE = "Aggregate"
    FILTER = "Filter"
    SORT = "Sort"
    DESCRIBE = "Describe"
    VISUALIZE = "Visualize"

# Column operations, tagged by "type"
class Mean(BaseModel):
    type: Literal["Mean"] = "Mean"
    column: str

class Sum(BaseModel):
    type: Literal["Sum"] = "Sum"
    column: str

class Count(BaseModel):
    type: Literal["Count"] = "Count"
    column: str

class GroupBy(BaseModel):
    type: Literal["GroupBy"] = "GroupBy"
    column: str

class SortBy(BaseModel):
    type: Literal["SortBy"] = "SortBy"
    column: str
    ascending: bool = True

class Filter(BaseModel):
    type: Literal["Filter"] = "Filter"
    column: str
    operator: str
    value: str

ColumnOperation = Annotated[
    Union[Mean, Sum, Count, GroupBy, SortBy, Filter],
    Field(discriminator="type"),
]

AGGREGATE_OPERATIONS = (Mean, Sum, Count)

class StructuredQuery(BaseModel):
    """Intermediate representation between translation and execution"""
    intent: QueryIntent
    columns: List[str] = Field(default_factory=list)
    operations: List[ColumnOperation] = Field(default_factory=list)
