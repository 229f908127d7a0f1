"""
Pydantic request/response models.

Rationale:
- Define explicit contracts for the dataset profile, mined artifacts and slides.
- Wire names stay camelCase (what the frontend sends and expects); Python
  attributes are snake_case through aliases.
- The dataset profile arrives from an untrusted caller, so every field is
  coerced to a typed default instead of failing validation.
"""

import logging
import math
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .intent import Intent

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            parsed = float(value.replace(",", ""))
        except ValueError:
            return None
        return int(parsed) if math.isfinite(parsed) else None
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    return None


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---------------------------------------------------------------------------
# Dataset profile
# ---------------------------------------------------------------------------

class Overview(WireModel):
    total_rows: Optional[int] = Field(None, alias="totalRows")
    total_columns: Optional[int] = Field(None, alias="totalColumns")
    columns: List[str] = Field(default_factory=list)

    @field_validator("total_rows", "total_columns", mode="before")
    @classmethod
    def _coerce_counts(cls, v):
        return _as_int(v)

    @field_validator("columns", mode="before")
    @classmethod
    def _coerce_columns(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        return [str(c) for c in v]


class _StatBase(WireModel):
    count: Optional[int] = None

    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, v):
        return _as_int(v)


class NumericStat(_StatBase):
    type: Literal["numeric"] = "numeric"
    mean: Optional[float] = None
    median: Optional[float] = None
    min: Any = None
    max: Any = None
    std_dev: Optional[float] = Field(None, alias="stdDev")

    @field_validator("mean", "median", "std_dev", mode="before")
    @classmethod
    def _coerce_numbers(cls, v):
        return _as_float(v)


class CategoricalStat(_StatBase):
    type: Literal["categorical"] = "categorical"
    unique_count: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("uniqueCount", "unique", "unique_count"),
        serialization_alias="uniqueCount",
    )
    # Either [value, count] pairs or {"value", "count"} records.
    top_values: List[Any] = Field(default_factory=list, alias="topValues")

    @field_validator("unique_count", mode="before")
    @classmethod
    def _coerce_unique(cls, v):
        return _as_int(v)

    @field_validator("top_values", mode="before")
    @classmethod
    def _coerce_top_values(cls, v):
        return list(v) if isinstance(v, (list, tuple)) else []


class DateStat(_StatBase):
    type: Literal["date"] = "date"
    min: Any = None
    max: Any = None


class OtherStat(_StatBase):
    type: str = "other"


ColumnStat = Union[NumericStat, CategoricalStat, DateStat, OtherStat]

_STAT_TYPES = {
    "numeric": NumericStat,
    "categorical": CategoricalStat,
    "date": DateStat,
}


def parse_column_stat(raw: Any) -> ColumnStat:
    """Build the tagged stat variant for one column; unknown shapes become OtherStat."""
    if isinstance(raw, (NumericStat, CategoricalStat, DateStat, OtherStat)):
        return raw
    if not isinstance(raw, dict):
        return OtherStat()
    stat_cls = _STAT_TYPES.get(raw.get("type"))
    if stat_cls is None:
        return OtherStat(type=str(raw.get("type") or "other"), count=raw.get("count"))
    try:
        return stat_cls.model_validate(raw)
    except ValidationError:
        logger.warning("profile.column_stat_invalid type=%s", raw.get("type"), exc_info=True)
        return OtherStat(count=raw.get("count"))


class DataQuality(WireModel):
    missing_values: Dict[str, Any] = Field(default_factory=dict, alias="missingValues")
    duplicates: int = 0

    @field_validator("missing_values", mode="before")
    @classmethod
    def _coerce_missing(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            logger.warning("profile.missing_values_not_a_map type=%s", type(v).__name__)
            return {}
        return {str(k): c for k, c in v.items()}

    @field_validator("duplicates", mode="before")
    @classmethod
    def _coerce_duplicates(cls, v):
        return _as_int(v) or 0


class ChartSpec(WireModel):
    kind: str = Field("bar", alias="type")
    title: Optional[str] = None
    description: Optional[str] = None
    data: List[Any] = Field(default_factory=list)
    x_key: Optional[str] = Field(None, alias="xKey")
    y_key: Optional[str] = Field(None, alias="yKey")

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, v):
        return str(v) if v else "bar"

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, v):
        return list(v) if isinstance(v, (list, tuple)) else []


class DatasetProfile(WireModel):
    overview: Overview = Field(default_factory=Overview)
    statistics: Dict[str, ColumnStat] = Field(default_factory=dict)
    data_quality: DataQuality = Field(default_factory=DataQuality, alias="dataQuality")
    sample: List[Dict[str, Any]] = Field(default_factory=list)
    file_name: Optional[str] = Field(None, alias="fileName")
    file_size: Optional[float] = Field(None, alias="fileSize")
    table_name: Optional[str] = Field(None, alias="tableName")
    charts: List[ChartSpec] = Field(default_factory=list)

    @field_validator("overview", "data_quality", mode="before")
    @classmethod
    def _coerce_section(cls, v):
        return v if isinstance(v, (dict, BaseModel)) else {}

    @field_validator("statistics", mode="before")
    @classmethod
    def _coerce_statistics(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            logger.warning("profile.statistics_not_a_map type=%s", type(v).__name__)
            return {}
        return {str(col): parse_column_stat(stat) for col, stat in v.items()}

    @field_validator("sample", mode="before")
    @classmethod
    def _coerce_sample(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        return [row for row in v if isinstance(row, dict)]

    @field_validator("file_name", "table_name", mode="before")
    @classmethod
    def _coerce_names(cls, v):
        return str(v) if v else None

    @field_validator("file_size", mode="before")
    @classmethod
    def _coerce_file_size(cls, v):
        return _as_float(v)

    @field_validator("charts", mode="before")
    @classmethod
    def _coerce_charts(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        return [c for c in v if isinstance(c, (dict, ChartSpec))]

    @property
    def row_count(self) -> Optional[int]:
        return self.overview.total_rows

    def numeric_stats(self) -> List[Tuple[str, NumericStat]]:
        return [(col, s) for col, s in self.statistics.items() if isinstance(s, NumericStat)]


def coerce_profile(raw: Any) -> Optional[DatasetProfile]:
    """
    Validate an untrusted profile payload at the pipeline ingress.

    Accepts the frontend's ``analysisData`` shape (profile sections nested under
    ``summary``) as well as a flat profile. Never raises; returns None when there
    is nothing usable.
    """
    if isinstance(raw, DatasetProfile):
        return raw
    if not isinstance(raw, dict):
        return None

    payload = {k: v for k, v in raw.items() if k != "summary"}
    summary = raw.get("summary")
    if isinstance(summary, dict):
        for key in ("overview", "statistics", "dataQuality", "tableName"):
            if key in summary and key not in payload:
                payload[key] = summary[key]
        if "totalRows" in summary:
            overview = payload.get("overview")
            overview = dict(overview) if isinstance(overview, dict) else {}
            overview.setdefault("totalRows", summary["totalRows"])
            payload["overview"] = overview

    try:
        return DatasetProfile.model_validate(payload)
    except ValidationError:
        logger.warning("profile.invalid keys=%s", sorted(payload.keys()), exc_info=True)
        return None


# ---------------------------------------------------------------------------
# Mined artifacts
# ---------------------------------------------------------------------------

class KeyMetric(WireModel):
    source: Literal["model", "profile"]
    text: Optional[str] = None
    column: Optional[str] = None
    mean: Optional[float] = None
    max: Any = None
    min: Any = None


class ExtractedArtifacts(WireModel):
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    chart_suggestions: List[str] = Field(default_factory=list, alias="chartSuggestions")
    key_metrics: List[KeyMetric] = Field(default_factory=list, alias="keyMetrics")
    presentation_sections: List[str] = Field(default_factory=list, alias="presentationSections")
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")


# ---------------------------------------------------------------------------
# Slides
# ---------------------------------------------------------------------------

class SlideType(str, Enum):
    TITLE = "title"
    CONTENT = "content"
    CHART = "chart"
    METRICS = "metrics"
    TWO_COLUMN = "two-column"
    CONCLUSION = "conclusion"
    AGENDA = "agenda"


class Layout(str, Enum):
    SINGLE = "single"
    TWO_COLUMN = "two-column"
    METRICS_GRID = "metrics-grid"
    CHART_FOCUS = "chart-focus"
    FULL_CHART = "full-chart"
    CHART_SINGLE = "chart-single"
    CHART_GRID = "chart-grid"


class Metric(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    label: str
    value: Union[str, float, int]
    trend: Optional[Literal["up", "down", "neutral"]] = None
    change: Optional[str] = None


class Slide(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    type: SlideType
    title: str
    subtitle: Optional[str] = None
    content: str = ""
    chart_spec: Optional[ChartSpec] = Field(None, alias="chartSpec")
    charts: Tuple[ChartSpec, ...] = ()
    metrics: Tuple[Metric, ...] = ()
    layout: Layout = Layout.SINGLE


class Deck(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    slides: Tuple[Slide, ...]
    fallback: bool = False
    intent: Intent = Intent.PRESENTATION

    def __len__(self) -> int:
        return len(self.slides)


# ---------------------------------------------------------------------------
# HTTP payloads
# ---------------------------------------------------------------------------

class ChatRequest(WireModel):
    message: Optional[str] = None
    analysis_data: Any = Field(None, alias="analysisData")


class ChatResponse(WireModel):
    message: str
    timestamp: int
    response_type: Intent = Field(alias="responseType")
    title: str
    action_data: Optional[Dict[str, Any]] = Field(None, alias="actionData")


class DeckRequest(WireModel):
    message: str = ""
    title: Optional[str] = None
    timestamp: Optional[int] = None
    response_type: Optional[Intent] = Field(None, alias="responseType")
    analysis_data: Any = Field(None, alias="analysisData")
