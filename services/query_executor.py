import json
import logging
import operator
from typing import Any, Dict, List, Optional

import pandas as pd

from core.data_loader import load_job_frame
from core.errors import ExecutionError, ParseError
from core.object_storage import ObjectStorage
from schemas.query import AGGREGATE_OPERATIONS, Count, Filter, GroupBy, Mean, QueryIntent, SortBy, StructuredQuery, Sum

logger = logging.getLogger(__name__)

DESCRIBE_ROWS = 10
VISUALIZE_ROWS = 100

EQUALITY_OPERATORS = {"=": True, "==": True, "!=": False, "<>": False}
NUMERIC_OPERATORS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}
AGGREGATE_PREFIXES = {Mean: "mean", Sum: "sum", Count: "count"}


def _is_numeric(series: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(series.dtype) and not pd.api.types.is_bool_dtype(series.dtype)


def _plain(value: Any) -> Any:
    if value is None or pd.isna(value):
        return None
    return value.item() if hasattr(value, "item") else value


def to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-compatible rows (NaN/NA -> None, timestamps -> ISO strings)"""
    return json.loads(df.to_json(orient="records", date_format="iso"))


class QueryExecutor:
    """Apply a StructuredQuery to a fresh parse of the job's raw file"""

    def __init__(self, storage: ObjectStorage, bucket: str):
        self.storage = storage
        self.bucket = bucket

    async def execute(self, query: StructuredQuery, job_id: str) -> pd.DataFrame:
        try:
            df = await load_job_frame(self.storage, job_id, self.bucket)
        except ParseError as e:
            raise ExecutionError(e.message) from e
        logger.info("Parsed CSV for job %s: %d rows, %d columns", job_id, len(df), len(df.columns))
        return self.apply(df, query)

    def apply(self, df: pd.DataFrame, query: StructuredQuery) -> pd.DataFrame:
        intent = query.intent
        if intent is QueryIntent.DESCRIBE:
            return df.head(DESCRIBE_ROWS)
        if intent is QueryIntent.AGGREGATE:
            return self._aggregate(df, query.operations)
        if intent is QueryIntent.FILTER:
            return self._project(self._filter(df, query.operations), query.columns)
        if intent is QueryIntent.SORT:
            return self._project(self._sort(df, query.operations), query.columns)
        if intent is QueryIntent.VISUALIZE:
            return self._project(df, query.columns).head(VISUALIZE_ROWS)
        raise ExecutionError(f"Unsupported intent: {intent}")

    def _require_columns(self, df: pd.DataFrame, columns: List[str]):
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ExecutionError(f"Column(s) not found: {', '.join(dict.fromkeys(missing))}")

    def _project(self, df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        if not columns:
            return df
        self._require_columns(df, columns)
        return df[list(dict.fromkeys(columns))]

    # Aggregate

    def _aggregate(self, df: pd.DataFrame, operations) -> pd.DataFrame:
        group_keys = list(dict.fromkeys(op.column for op in operations if isinstance(op, GroupBy)))
        aggregates = [op for op in operations if isinstance(op, AGGREGATE_OPERATIONS)]
        self._require_columns(df, group_keys + [op.column for op in aggregates])

        for op in aggregates:
            if not isinstance(op, Count) and not _is_numeric(df[op.column]):
                raise ExecutionError(
                    f"Cannot compute {AGGREGATE_PREFIXES[type(op)]} of non-numeric column {op.column!r}"
                )

        if group_keys:
            return self._grouped_aggregate(df, group_keys, aggregates)
        if not aggregates:
            return df

        row = {}
        for op in aggregates:
            series = df[op.column]
            if isinstance(op, Mean):
                value = series.mean()
            elif isinstance(op, Sum):
                value = series.sum()
            else:
                value = series.count()
            row[f"{AGGREGATE_PREFIXES[type(op)]}_{op.column}"] = _plain(value)
        return pd.DataFrame([row])

    def _grouped_aggregate(self, df: pd.DataFrame, group_keys: List[str], aggregates) -> pd.DataFrame:
        grouped = df.groupby(group_keys, sort=False, dropna=False)
        if not aggregates:
            return grouped.size().reset_index(name=f"count_{'_'.join(group_keys)}")

        parts = []
        for op in aggregates:
            name = f"{AGGREGATE_PREFIXES[type(op)]}_{op.column}"
            if op.column in group_keys:
                if not isinstance(op, Count):
                    raise ExecutionError(f"Cannot aggregate group column {op.column!r}")
                series = grouped.size()
            elif isinstance(op, Mean):
                series = grouped[op.column].mean()
            elif isinstance(op, Sum):
                series = grouped[op.column].sum()
            else:
                series = grouped[op.column].count()
            parts.append(series.rename(name))
        return pd.concat(parts, axis=1).reset_index()

    # Filter

    def _filter(self, df: pd.DataFrame, operations) -> pd.DataFrame:
        result = df
        for op in operations:
            if not isinstance(op, Filter):
                continue
            mask = self._filter_mask(result, op)
            if mask is not None:
                result = result[mask]
        return result

    def _filter_mask(self, df: pd.DataFrame, op: Filter) -> Optional[pd.Series]:
        self._require_columns(df, [op.column])
        series = df[op.column]
        present = series.notna()
        op_name = op.operator.strip()

        if op_name in EQUALITY_OPERATORS:
            equal = self._equals(series, op.value)
            mask = equal if EQUALITY_OPERATORS[op_name] else ~equal
            return mask & present

        if op_name in NUMERIC_OPERATORS:
            try:
                number = float(op.value)
            except ValueError:
                logger.warning("Failed to parse '%s' as number for '%s' comparison, skipping filter",
                               op.value, op_name)
                return None
            if not _is_numeric(series):
                raise ExecutionError(f"Cannot compare non-numeric column {op.column!r} with '{op_name}'")
            compare = NUMERIC_OPERATORS[op_name]
            return compare(series.astype("float64"), number).fillna(False).astype(bool) & present

        logger.warning("Unsupported operator: %s", op.operator)
        return None

    def _equals(self, series: pd.Series, value: str) -> pd.Series:
        if _is_numeric(series):
            try:
                return (series.astype("float64") == float(value)).fillna(False).astype(bool)
            except ValueError:
                pass
        if pd.api.types.is_bool_dtype(series.dtype):
            return (series.astype(str).str.lower() == value.strip().lower()).astype(bool)
        return (series.astype(str) == value).astype(bool)

    # Sort

    def _sort(self, df: pd.DataFrame, operations) -> pd.DataFrame:
        result = df
        for op in operations:
            if isinstance(op, SortBy):
                self._require_columns(result, [op.column])
                result = result.sort_values(op.column, ascending=op.ascending, na_position="last", kind="stable")
        return result
