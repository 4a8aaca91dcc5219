from __future__ import annotations

import io
from pathlib import Path
from typing import IO, List, Sequence, Union

import pandas as pd

from .models import MetricDefinition, MetricSubmission

CSV_COLUMNS = ("KPI Name", "Value")

CsvSource = Union[str, Path, IO[str]]


def submission_template_csv(metrics: Sequence[MetricDefinition]) -> str:
    """Header plus one blank row per active metric, in display order."""
    active = sorted((m for m in metrics if m.is_active), key=lambda m: m.display_order)
    frame = pd.DataFrame({CSV_COLUMNS[0]: [m.name for m in active], CSV_COLUMNS[1]: ["" for _ in active]})
    buffer = io.StringIO()
    frame.to_csv(buffer, index=False)
    return buffer.getvalue()


def read_submission_frame(source: CsvSource) -> pd.DataFrame:
    """Load an uploaded two-column KPI sheet, tolerating stray whitespace and header case."""
    df = pd.read_csv(source, dtype=str, skipinitialspace=True)
    if df.shape[1] < 2:
        raise ValueError(f"Expected columns {', '.join(CSV_COLUMNS)}; got {', '.join(df.columns)}")
    df = df.iloc[:, :2]
    df.columns = list(CSV_COLUMNS)
    df["KPI Name"] = df["KPI Name"].fillna("").str.strip()
    df["Value"] = pd.to_numeric(df["Value"].fillna("").astype(str).str.strip(), errors="coerce")
    return df


def load_submission_csv(
    source: CsvSource,
    metrics: Sequence[MetricDefinition],
    competitor_id: str,
    season_id: str,
    week: int,
) -> List[MetricSubmission]:
    """Turn a "KPI Name,Value" sheet into submissions.

    Metric names match case-insensitively; unknown names and blank or
    non-numeric values are skipped.
    """
    lookup = {metric.name.strip().lower(): metric for metric in metrics}
    df = read_submission_frame(source)
    submissions: List[MetricSubmission] = []
    for row in df.dropna(subset=["Value"]).itertuples(index=False):
        metric = lookup.get(str(row[0]).lower())
        if metric is None:
            continue
        submissions.append(
            MetricSubmission(
                competitor_id=competitor_id,
                metric_id=metric.id,
                season_id=season_id,
                week=week,
                value=float(row[1]),
            )
        )
    return submissions
