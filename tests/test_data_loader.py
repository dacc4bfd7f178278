import uuid

import pytest

from core.data_loader import (
    DEFAULT_BUCKET,
    dataset_key_variants,
    load_job_dataset,
    parse_csv,
    schema_snapshot,
)
from core.errors import DataLoadError, ExecutionError, ObjectNotFoundError, ParseError
from helpers import SALES_CSV, make_csv


def test_parse_infers_column_types():
    content = (
        b"id,score,active,day,stamp,clock,name\n"
        b"1,1.5,true,2024-01-01,2024-01-01T10:00:00,10:30,ann\n"
        b"2,,False,2024-01-02,2024-01-02T11:15:00,11:00,bob\n"
    )
    df = parse_csv(content)
    assert schema_snapshot(df).data_types == {
        "id": "integer",
        "score": "float",
        "active": "boolean",
        "day": "date",
        "stamp": "datetime",
        "clock": "time",
        "name": "string",
    }
    assert df["score"].isna().sum() == 1
    assert bool(df["active"].iloc[1]) is False


def test_schema_snapshot_keeps_column_order_and_row_count():
    metadata = schema_snapshot(parse_csv(SALES_CSV))
    assert metadata.columns == ["region", "product", "units", "price"]
    assert metadata.row_count == 5


def test_type_is_inferred_from_first_hundred_rows_only():
    rows = [[i] for i in range(100)] + [["not-a-number"]]
    with pytest.raises(ParseError, match="not-a-number"):
        parse_csv(make_csv(["value"], rows))


def test_value_after_sample_that_fits_type_parses():
    rows = [[i] for i in range(150)]
    df = parse_csv(make_csv(["value"], rows))
    assert len(df) == 150
    assert df["value"].iloc[-1] == 149


def test_large_non_negative_integers_become_unsigned():
    df = parse_csv(b"id,v\n12345678901234567890,1\n18000000000000000000,2\n")

    assert schema_snapshot(df).data_types == {"id": "unsigned integer", "v": "integer"}
    assert int(df["id"].iloc[0]) == 12345678901234567890
    assert str(df["id"].dtype) == "UInt64"


def test_integers_beyond_unsigned_range_fall_back_to_float():
    df = parse_csv(b"id,v\n12345678901234567890,1\n22345678901234567890,2\n")

    assert schema_snapshot(df).data_types["id"] == "float"
    assert df["id"].iloc[1] == pytest.approx(2.2345678901234567e19)


def test_negative_and_huge_integers_fall_back_to_float():
    df = parse_csv(b"id\n-5\n12345678901234567890\n")
    assert schema_snapshot(df).data_types["id"] == "float"


@pytest.mark.parametrize("content", [b"", b"  \n\n"])
def test_empty_content_is_parse_error(content):
    with pytest.raises(ParseError):
        parse_csv(content)


def test_ragged_rows_are_parse_error():
    with pytest.raises(ParseError):
        parse_csv(b"a,b\n1,2\n3,4,5,6\n")


def test_null_and_non_null_counts_add_up_to_row_count():
    df = parse_csv(b"a,b,c\n1,,x\n,2.5,\n3,4.5,y\n,,\n")
    for column in df.columns:
        assert df[column].isna().sum() + df[column].notna().sum() == len(df)


def test_key_variants_are_tried_in_fixed_order():
    job_id = str(uuid.uuid4())
    assert dataset_key_variants(job_id, "my-bucket") == [
        ("", f"uploads/{job_id}.csv"),
        (DEFAULT_BUCKET, f"uploads/{job_id}.csv"),
        ("my-bucket", f"uploads/{job_id}.csv"),
        ("", f"{job_id}.csv"),
    ]


class RecordingStorage:
    def __init__(self, objects):
        self.objects = objects
        self.calls = []

    async def get(self, bucket, key):
        self.calls.append((bucket, key))
        if (bucket, key) not in self.objects:
            raise ObjectNotFoundError(bucket, key)
        return self.objects[(bucket, key)]


@pytest.mark.asyncio
async def test_load_falls_back_until_a_variant_succeeds():
    job_id = str(uuid.uuid4())
    storage = RecordingStorage({("my-bucket", f"uploads/{job_id}.csv"): b"a\n1\n"})

    data = await load_job_dataset(storage, job_id, "my-bucket")

    assert data == b"a\n1\n"
    assert storage.calls == dataset_key_variants(job_id, "my-bucket")[:3]


@pytest.mark.asyncio
async def test_load_finds_simple_key(storage):
    job_id = str(uuid.uuid4())
    await storage.put(f"{job_id}.csv", b"a\n1\n")
    assert await load_job_dataset(storage, job_id, "bucket") == b"a\n1\n"


@pytest.mark.asyncio
async def test_load_raises_data_load_error_when_all_variants_fail(storage):
    with pytest.raises(DataLoadError):
        await load_job_dataset(storage, str(uuid.uuid4()), "bucket")


@pytest.mark.asyncio
async def test_load_rejects_invalid_job_id(storage):
    with pytest.raises(ExecutionError, match="Invalid job ID"):
        await load_job_dataset(storage, "not-a-uuid", "bucket")
