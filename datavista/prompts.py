"""
Prompt composition for the Generation Service.

Builds one instruction string from the dataset profile, the user question and
the classified intent. Composition never fails: missing or malformed profile
fields render as "Unknown" / "None" placeholders.
"""

import json
import logging
import math
import os
from typing import Any, Optional

from .intent import Intent
from .schemas import (
    CategoricalStat,
    ColumnStat,
    DatasetProfile,
    DateStat,
    NumericStat,
    coerce_profile,
)

logger = logging.getLogger(__name__)

# Prompt-size guardrails
MAX_SAMPLE_ROWS = int(os.getenv("MAX_SAMPLE_ROWS", "3"))
MAX_TOP_VALUES = 3

UNKNOWN = "Unknown"

_SYSTEM_PREAMBLE = (
    "You are an expert data analyst AI assistant specializing in data insights and analysis. "
    "Your role is to help users understand their data and provide actionable insights."
)

INTENT_INSTRUCTIONS = {
    Intent.PRESENTATION: """
## PRESENTATION INSTRUCTIONS:
You are creating content for a presentation. Structure your response as presentation slides:

### Slide 1: Executive Summary
- Brief overview of key findings
- 2-3 most important insights

### Slide 2: Data Overview
- Dataset size and structure
- Data quality highlights

### Slide 3: Key Findings
- Top 3-4 insights from analysis
- Include specific numbers and percentages

### Slide 4: Trends & Patterns
- Notable trends in the data
- Relationships between variables

### Slide 5: Recommendations
- 3-4 actionable recommendations
- Next steps for analysis

### Slide 6: Conclusion
- Summary of main points
- Call to action

**Format each slide with clear headers and bullet points suitable for presentation.**""",
    Intent.VISUALIZATION: """
## VISUALIZATION INSTRUCTIONS:
Focus on recommending specific charts and visual representations:

### Recommended Visualizations
- Suggest 2-3 specific chart types (bar chart, pie chart, line chart, etc.)
- Explain why each chart type is suitable for this data
- Identify which columns should be used for each visualization

### Chart Specifications
- Specify x-axis and y-axis for each chart
- Suggest appropriate titles and labels
- Recommend color schemes if relevant

**Use clear markdown formatting and be specific about implementation.**""",
    Intent.INSIGHTS: """
## INSIGHTS INSTRUCTIONS:
Provide comprehensive data analysis and insights:

### Summary
### Key Findings
### Insights & Patterns
### Recommendations
### Next Steps

**Focus on actionable insights and specific findings from the data.**""",
    Intent.GENERAL: """
## GENERAL INSTRUCTIONS:
Provide a comprehensive and well-formatted response using proper markdown:

### Summary
### Analysis
### Recommendations

**Use clear markdown headers, bullet points, and emphasis for readability.**""",
}

_GUIDELINES = """## IMPORTANT GUIDELINES:
- Base all insights on the actual data provided
- If data is insufficient, clearly state limitations
- Suggest specific column names and values when making recommendations
- Focus on practical, actionable insights
- If the question is unclear, ask for clarification
- Use professional but friendly tone
- Include numbers and statistics where relevant"""


def _fmt_value(value: Any) -> str:
    """Render a scalar the way the frontend would (integral floats without '.0')."""
    if value is None:
        return UNKNOWN
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def _fmt_fixed(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else UNKNOWN


def format_file_size(size: Optional[float]) -> str:
    if not size:
        return UNKNOWN
    k = 1024
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size) / math.log(k))), len(units) - 1) if size >= 1 else 0
    return f"{round(size / (k ** i), 2):g} {units[i]}"


def _format_top_values(top_values: list) -> str:
    if not top_values:
        return "None"
    parts = []
    for item in top_values[:MAX_TOP_VALUES]:
        if isinstance(item, (list, tuple)) and len(item) >= 2:
            parts.append(f"{item[0]}({item[1]})")
        elif isinstance(item, dict) and "value" in item and "count" in item:
            parts.append(f"{item['value']}({item['count']})")
        else:
            parts.append(str(item))
    return ", ".join(parts)


def format_column_stat(column: str, stat: ColumnStat) -> str:
    if isinstance(stat, NumericStat):
        return (
            f"• {column} (Numeric): Mean: {_fmt_fixed(stat.mean)}, Min: {_fmt_value(stat.min)}, "
            f"Max: {_fmt_value(stat.max)}, Std Dev: {_fmt_fixed(stat.std_dev)}"
        )
    if isinstance(stat, CategoricalStat):
        return (
            f"• {column} (Categorical): {_fmt_value(stat.unique_count)} unique values, "
            f"Top values: {_format_top_values(stat.top_values)}"
        )
    if isinstance(stat, DateStat):
        return (
            f"• {column} (Date): {_fmt_value(stat.count)} entries, "
            f"Range: {_fmt_value(stat.min)} to {_fmt_value(stat.max)}"
        )
    return f"• {column}: {_fmt_value(stat.count)} entries"


def _format_sample(profile: DatasetProfile) -> str:
    rows = profile.sample[:MAX_SAMPLE_ROWS]
    if not rows:
        return "No sample data available"
    return "\n".join(
        f"Row {i + 1}: {json.dumps(row, separators=(',', ':'), ensure_ascii=False, default=str)}"
        for i, row in enumerate(rows)
    )


def _format_dataset_context(profile: DatasetProfile) -> str:
    overview = profile.overview
    total_rows = f"{overview.total_rows:,}" if overview.total_rows is not None else UNKNOWN
    stats_block = "\n".join(
        format_column_stat(col, stat) for col, stat in profile.statistics.items()
    ) or "No statistics available"
    missing = ", ".join(
        f"{col}: {count}" for col, count in profile.data_quality.missing_values.items()
    ) or "None"

    return (
        "## DATASET CONTEXT:\n"
        "**Overview:**\n"
        f"- Total Rows: {total_rows}\n"
        f"- Total Columns: {_fmt_value(overview.total_columns)}\n"
        f"- Columns: {', '.join(overview.columns) or UNKNOWN}\n"
        f"- File Name: {profile.file_name or UNKNOWN}\n"
        f"- File Size: {format_file_size(profile.file_size)}\n\n"
        f"**Sample Data (First {MAX_SAMPLE_ROWS} Rows):**\n"
        f"{_format_sample(profile)}\n\n"
        "**Column Statistics:**\n"
        f"{stats_block}\n\n"
        "**Data Quality:**\n"
        f"- Missing Values: {missing}\n"
        f"- Duplicate Rows: {profile.data_quality.duplicates}"
    )


def compose(query: str, profile: Any, intent: Intent) -> str:
    """Build the instruction payload for one query."""
    if not isinstance(profile, DatasetProfile):
        profile = coerce_profile(profile)
    if profile is None:
        logger.info("compose.no_profile intent=%s", intent.value)
        profile = DatasetProfile()

    return (
        f"{_SYSTEM_PREAMBLE}\n\n"
        f"{_format_dataset_context(profile)}\n\n"
        f"## USER QUESTION:\n{query}\n\n"
        f"## RESPONSE TYPE: {intent.value.upper()}\n"
        f"{INTENT_INSTRUCTIONS[intent]}\n\n"
        f"{_GUIDELINES}\n"
    )
