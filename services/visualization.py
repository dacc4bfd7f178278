from typing import Any, Dict, List, Optional, Union

from schemas.chart import ChartSpec, TableSpec


def as_number(value: Any) -> Optional[float]:
    """Numbers and numeric-looking strings as float, anything else as None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def synthesize(rows: List[Dict[str, Any]]) -> Optional[Union[ChartSpec, TableSpec]]:
    """
    Pick a chart for a Visualize result, looking at the first row's fields:
    averages of numeric fields, else value counts of the first string
    field, else a plain table.
    """
    if not rows:
        return None
    first_row = rows[0]

    numeric_fields = [k for k, v in first_row.items() if as_number(v) is not None]
    if numeric_fields:
        averages = []
        for field in numeric_fields:
            numbers = [n for n in (as_number(row.get(field)) for row in rows) if n is not None]
            averages.append(sum(numbers) / len(numbers) if numbers else 0.0)
        return ChartSpec(label="Average", labels=numeric_fields, values=averages)

    string_fields = [k for k, v in first_row.items() if isinstance(v, str)]
    if string_fields:
        field = string_fields[0]
        counts: Dict[str, int] = {}
        for row in rows:
            value = row.get(field)
            if isinstance(value, str):
                counts[value] = counts.get(value, 0) + 1
        return ChartSpec(label=f"{field} count", labels=list(counts), values=list(counts.values()))

    columns = list(first_row)
    return TableSpec(
        columns=columns,
        rows=[[_cell(row.get(column)) for column in columns] for row in rows],
    )
