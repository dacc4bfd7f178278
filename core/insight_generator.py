import math
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from core.data_loader import DATE_TYPES, NUMERIC_TYPES, column_types, parse_csv
from schemas.insights import ColumnStatistics, DataSummary, Insights

TOP_VALUES_LIMIT = 10


def format_raw(value: float) -> str:
    """Plain numeric rendering: 3.0 -> "3", 2.5 -> "2.5" """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_fixed(value: Optional[float]) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    return f"{float(value):.2f}"


def pearson_correlation(x: np.ndarray, y: np.ndarray) -> Optional[float]:
    """
    Pearson correlation over pairwise-complete observations. Returns None
    when fewer than 2 pairs remain or either side has zero variance.
    """
    mask = ~(np.isnan(x) | np.isnan(y))
    x, y = x[mask], y[mask]
    if len(x) < 2:
        return None

    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return None

    dx = x - x.mean()
    dy = y - y.mean()
    var_x = float(np.dot(dx, dx))
    var_y = float(np.dot(dy, dy))
    if var_x == 0.0 or var_y == 0.0:
        return None

    correlation = float(np.dot(dx, dy)) / math.sqrt(var_x * var_y)
    return max(-1.0, min(1.0, correlation))


class InsightGenerator:
    """Turn a parsed table into summary, per-column statistics and correlations"""

    def generate_from_bytes(self, content: bytes) -> Insights:
        return self.generate(parse_csv(content))

    def generate(self, df: pd.DataFrame) -> Insights:
        types = column_types(df)
        numeric_columns = [c for c in df.columns if types[c] in NUMERIC_TYPES]
        date_columns = [c for c in df.columns if types[c] in DATE_TYPES]
        categorical_columns = [
            c for c in df.columns if c not in numeric_columns and c not in date_columns
        ]

        row_count = int(len(df))
        column_count = int(len(df.columns))
        data_summary = DataSummary(
            row_count=row_count,
            column_count=column_count,
            numeric_columns=numeric_columns,
            categorical_columns=categorical_columns,
            date_columns=date_columns,
            summary_text=(
                f"Dataset has {row_count} rows and {column_count} columns "
                f"({len(numeric_columns)} numeric, {len(categorical_columns)} categorical, "
                f"{len(date_columns)} date)."
            ),
        )

        column_statistics = []
        for column in df.columns:
            stats = self._column_statistics(df[column], column, types[column])
            if column in categorical_columns:
                stats.frequent_values = self._frequent_values(df[column])
            column_statistics.append(stats)

        return Insights(
            data_summary=data_summary,
            column_statistics=column_statistics,
            correlations=self.correlations(df, numeric_columns),
        )

    def _column_statistics(self, col_data: pd.Series, name: str, type_name: str) -> ColumnStatistics:
        stats = ColumnStatistics(
            name=str(name),
            data_type=type_name,
            null_count=int(col_data.isna().sum()),
            unique_count=int(col_data.nunique(dropna=False)),
        )
        if type_name not in NUMERIC_TYPES:
            return stats

        values = col_data.dropna().astype("float64")
        if values.empty:
            return stats

        stats.min = format_raw(values.min())
        stats.max = format_raw(values.max())
        stats.mean = format_fixed(values.mean())
        stats.median = format_fixed(values.median())
        stats.std_dev = format_fixed(values.std(ddof=1)) if len(values) > 1 else None
        stats.percentile_25 = format_fixed(values.quantile(0.25, interpolation="linear"))
        stats.percentile_75 = format_fixed(values.quantile(0.75, interpolation="linear"))
        return stats

    def _frequent_values(self, col_data: pd.Series) -> Dict[str, int]:
        values = col_data.dropna().astype(str)
        counts = values.value_counts()
        # ties keep first-seen order (sorted() is stable)
        ranked = sorted(pd.unique(values), key=lambda v: -counts[v])[:TOP_VALUES_LIMIT]
        return {str(v): int(counts[v]) for v in ranked}

    def correlations(self, df: pd.DataFrame, numeric_columns: List[str]) -> Optional[Dict[str, float]]:
        if len(numeric_columns) < 2:
            return None

        arrays = {
            c: df[c].astype("float64").to_numpy(dtype=float, na_value=np.nan) for c in numeric_columns
        }
        result = {}
        for i, first in enumerate(numeric_columns):
            for second in numeric_columns[i + 1:]:
                value = pearson_correlation(arrays[first], arrays[second])
                if value is not None:
                    result[f"{first}-{second}"] = value
        return result
