"""
Dataset profiling for callers that upload a CSV instead of sending a profile.

Produces the same profile shape the browser-side profiler sends with each chat
request: overview, per-column statistics, data quality and a few sample rows.
"""

import io
import json
import logging
import os
from typing import IO, Any, Dict, Optional

import httpx
import pandas as pd

from .prompts import MAX_SAMPLE_ROWS
from .schemas import DatasetProfile

logger = logging.getLogger(__name__)

# Configuration from environment with sensible defaults
ROW_LIMIT = int(os.getenv("ROW_LIMIT", "5000"))
PROFILE_SAMPLE_SIZE = int(os.getenv("PROFILE_SAMPLE_SIZE", "1000"))

NUMERIC_SHARE = 0.7
DATE_SHARE = 0.7
DATE_PROBE_VALUES = 10
TOP_VALUES = 10
DUPLICATE_SCAN_ROWS = 1000


def _empty_mask(series: pd.Series) -> pd.Series:
    return series.isna() | (series.astype(str).str.strip() == "")


def _parse_dates(values: pd.Series) -> pd.Series:
    return pd.to_datetime(values.astype(str), errors="coerce", format="mixed")


def column_stat(series: pd.Series) -> Dict[str, Any]:
    """Statistics for one column, tagged numeric / date / categorical."""
    values = series[~_empty_mask(series)]
    if values.empty:
        return {"type": "other", "count": 0}

    numeric = pd.to_numeric(values, errors="coerce").dropna()
    if len(numeric) > len(values) * NUMERIC_SHARE:
        return {
            "type": "numeric",
            "count": int(len(numeric)),
            "mean": float(numeric.mean()),
            "median": float(numeric.median()),
            "min": float(numeric.min()),
            "max": float(numeric.max()),
            "stdDev": float(numeric.std(ddof=0)),
        }

    probe = _parse_dates(values.head(DATE_PROBE_VALUES))
    if probe.notna().mean() > DATE_SHARE:
        dates = _parse_dates(values).dropna()
        return {
            "type": "date",
            "count": int(len(dates)),
            "min": dates.min().isoformat(),
            "max": dates.max().isoformat(),
        }

    text = values.astype(str)
    counts = text.value_counts().head(TOP_VALUES)
    return {
        "type": "categorical",
        "count": int(len(text)),
        "uniqueCount": int(text.nunique()),
        "topValues": [[value, int(count)] for value, count in counts.items()],
    }


def profile_dataframe(
    df: pd.DataFrame,
    file_name: Optional[str] = None,
    file_size: Optional[float] = None,
) -> DatasetProfile:
    columns = [str(c) for c in df.columns]
    sampled = df.head(PROFILE_SAMPLE_SIZE)

    statistics = {str(col): column_stat(sampled[col]) for col in df.columns}
    missing = {str(col): int(_empty_mask(df[col]).sum()) for col in df.columns}
    duplicates = int(df.head(DUPLICATE_SCAN_ROWS).duplicated().sum())
    # to_json handles NaN -> null and numpy scalars
    sample = json.loads(df.head(MAX_SAMPLE_ROWS).to_json(orient="records", date_format="iso"))

    logger.info(
        "profile.built file_name=%s rows=%d columns=%d duplicates=%d",
        file_name,
        len(df),
        len(columns),
        duplicates,
    )
    return DatasetProfile.model_validate({
        "overview": {"totalRows": len(df), "totalColumns": len(columns), "columns": columns},
        "statistics": statistics,
        "dataQuality": {"missingValues": missing, "duplicates": duplicates},
        "sample": sample,
        "fileName": file_name,
        "fileSize": file_size,
    })


def load_csv(source: IO) -> pd.DataFrame:
    """Load a CSV file object into a DataFrame with row limit."""
    df = pd.read_csv(source)
    if len(df) > ROW_LIMIT:
        df = df.head(ROW_LIMIT)
    return df


async def load_csv_from_url(url: str, client: httpx.AsyncClient) -> pd.DataFrame:
    """Download and load a CSV from URL into a DataFrame with row limit."""
    response = await client.get(url)
    response.raise_for_status()
    return load_csv(io.BytesIO(response.content))


def file_name_from_url(url: str) -> str:
    filename = url.split("/")[-1].split("?")[0]
    if not filename.endswith(".csv"):
        filename = "dataset.csv"
    return filename
