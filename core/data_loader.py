import io
import logging
import uuid
from typing import Dict, List, Tuple

import pandas as pd

from core.errors import DataLoadError, ExecutionError, ParseError
from core.object_storage import ObjectStorage
from schemas.conversation import DatasetMetadata

logger = logging.getLogger(__name__)

SCHEMA_SAMPLE_ROWS = 100
DEFAULT_BUCKET = "default-bucket"

NUMERIC_TYPES = ("integer", "unsigned integer", "float")
DATE_TYPES = ("date", "datetime")

INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1
UINT64_MAX = 2 ** 64 - 1

# Checked in order; the first pattern every sampled value matches wins
_PATTERNS = [
    ("boolean", r"(?i)true|false"),
    ("integer", r"[+-]?\d+"),
    ("float", r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"),
    ("date", r"\d{4}-\d{2}-\d{2}"),
    ("datetime", r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"),
    ("time", r"\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?"),
]
_PATTERN_BY_TYPE = dict(_PATTERNS)


def _infer_type(sample: pd.Series) -> str:
    if sample.empty:
        return "string"
    for type_name, pattern in _PATTERNS:
        if sample.str.fullmatch(pattern).all():
            return type_name
    return "string"


def _convert_integer(stripped: pd.Series) -> Tuple[pd.Series, str]:
    """Int64 when every value fits, UInt64 for large non-negative values, float otherwise"""
    ints = [None if pd.isna(v) else int(v) for v in stripped]
    present = [v for v in ints if v is not None]
    low = min(present, default=0)
    high = max(present, default=0)
    if INT64_MIN <= low and high <= INT64_MAX:
        return pd.Series(pd.array(ints, dtype="Int64"), index=stripped.index), "integer"
    if low >= 0 and high <= UINT64_MAX:
        return pd.Series(pd.array(ints, dtype="UInt64"), index=stripped.index), "unsigned integer"
    return stripped.astype("float64"), "float"


def _convert(column: str, values: pd.Series, type_name: str) -> Tuple[pd.Series, str]:
    """Convert a whole text column to the inferred type; returns the column and its final type"""
    if type_name == "string":
        return values, type_name

    stripped = values.str.strip()
    present = stripped.dropna()
    mismatched = present[~present.str.fullmatch(_PATTERN_BY_TYPE[type_name])]
    if not mismatched.empty:
        raise ParseError(
            f"Could not parse value {mismatched.iloc[0]!r} in column {column!r} as {type_name}"
        )

    try:
        if type_name == "boolean":
            return stripped.str.lower().map({"true": True, "false": False}).astype("boolean"), type_name
        if type_name == "integer":
            return _convert_integer(stripped)
        if type_name == "float":
            return pd.to_numeric(stripped).astype("float64"), type_name
        if type_name == "date":
            return pd.to_datetime(stripped, format="%Y-%m-%d"), type_name
        if type_name == "datetime":
            return pd.to_datetime(stripped, format="ISO8601"), type_name
    except (ValueError, TypeError, OverflowError) as e:
        raise ParseError(f"Could not convert column {column!r} to {type_name}: {e}") from e
    # time values stay as text
    return stripped, type_name


def parse_csv(content: bytes) -> pd.DataFrame:
    """
    Parse comma-delimited bytes with a header row into a DataFrame.
    Column types are inferred from the first SCHEMA_SAMPLE_ROWS data rows and
    recorded in df.attrs["column_types"].
    """
    if not content or not content.strip():
        raise ParseError("Failed to parse CSV data: content is empty")

    try:
        raw = pd.read_csv(io.BytesIO(content), dtype=str, encoding="utf-8")
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        raise ParseError(f"Failed to parse CSV data: {e}") from e

    columns: Dict[str, pd.Series] = {}
    column_types: Dict[str, str] = {}
    for column in raw.columns:
        values = raw[column].astype(object)
        sample = values.head(SCHEMA_SAMPLE_ROWS).dropna().astype(str).str.strip()
        type_name = _infer_type(sample)
        columns[column], column_types[column] = _convert(column, values, type_name)

    df = pd.DataFrame(columns, index=raw.index)
    df.attrs["column_types"] = column_types
    return df


def dtype_tag(series: pd.Series) -> str:
    """Type tag derived from a pandas dtype"""
    dtype = series.dtype
    if pd.api.types.is_bool_dtype(dtype):
        return "boolean"
    if pd.api.types.is_unsigned_integer_dtype(dtype):
        return "unsigned integer"
    if pd.api.types.is_integer_dtype(dtype):
        return "integer"
    if pd.api.types.is_float_dtype(dtype):
        return "float"
    if pd.api.types.is_datetime64_any_dtype(dtype):
        return "datetime"
    if pd.api.types.is_timedelta64_dtype(dtype):
        return "time"
    return "string"


def column_types(df: pd.DataFrame) -> Dict[str, str]:
    recorded = df.attrs.get("column_types") or {}
    return {column: recorded.get(column) or dtype_tag(df[column]) for column in df.columns}


def schema_snapshot(df: pd.DataFrame) -> DatasetMetadata:
    return DatasetMetadata(
        columns=[str(c) for c in df.columns],
        row_count=len(df),
        data_types=column_types(df),
    )


def dataset_key_variants(job_id: str, bucket: str) -> List[Tuple[str, str]]:
    """(bucket, key) pairs tried in order when loading a job's raw file"""
    file_key = f"uploads/{job_id}.csv"
    return [
        ("", file_key),
        (DEFAULT_BUCKET, file_key),
        (bucket, file_key),
        ("", f"{job_id}.csv"),
    ]


async def load_job_dataset(storage: ObjectStorage, job_id: str, bucket: str) -> bytes:
    try:
        normalized = str(uuid.UUID(job_id))
    except (ValueError, TypeError) as e:
        raise ExecutionError(f"Invalid job ID: {job_id}") from e

    last_error = None
    for variant_bucket, key in dataset_key_variants(normalized, bucket):
        try:
            data = await storage.get(variant_bucket, key)
        except Exception as e:
            logger.debug("No dataset at %r/%r: %s", variant_bucket, key, e)
            last_error = e
            continue
        logger.info("Loaded CSV data for job %s from %r/%r (%d bytes)",
                    normalized, variant_bucket, key, len(data))
        return data

    logger.error("Failed to load CSV data for job %s after all fallbacks: %s", normalized, last_error)
    raise DataLoadError(f"Failed to load CSV data: {last_error}") from last_error


async def load_job_frame(storage: ObjectStorage, job_id: str, bucket: str) -> pd.DataFrame:
    """Fresh parse of the job's raw file"""
    return parse_csv(await load_job_dataset(storage, job_id, bucket))
