from datavista.intent import Intent
from datavista.prompts import compose, format_file_size


def _profile(**overrides):
    profile = {
        "summary": {
            "overview": {"totalRows": 1234567, "totalColumns": 3, "columns": ["revenue", "region", "day"]},
            "statistics": {
                "revenue": {"type": "numeric", "mean": 1250.5, "min": 100, "max": 5000, "stdDev": 750.25},
                "region": {
                    "type": "categorical",
                    "unique": 4,
                    "topValues": [["North", 5], {"value": "South", "count": 3}, "East", ["West", 1]],
                },
                "day": {"type": "date", "count": 10, "min": "2024-01-01", "max": "2024-12-31"},
                "notes": {"type": "text", "count": 7},
            },
            "dataQuality": {"missingValues": {"revenue": 2}, "duplicates": 1},
        },
        "sample": [{"revenue": i, "region": "North"} for i in range(5)],
        "fileName": "sales.csv",
        "fileSize": 2048,
    }
    profile.update(overrides)
    return profile


def test_numeric_stats_rendered_with_two_decimals():
    prompt = compose("Describe revenue", _profile(), Intent.GENERAL)
    assert "• revenue (Numeric): Mean: 1250.50, Min: 100, Max: 5000, Std Dev: 750.25" in prompt


def test_categorical_top_values_accept_pairs_and_records():
    prompt = compose("Describe region", _profile(), Intent.GENERAL)
    assert "• region (Categorical): 4 unique values, Top values: North(5), South(3), East" in prompt
    assert "West(1)" not in prompt


def test_date_and_unknown_types():
    prompt = compose("q", _profile(), Intent.GENERAL)
    assert "• day (Date): 10 entries, Range: 2024-01-01 to 2024-12-31" in prompt
    assert "• notes: 7 entries" in prompt


def test_overview_and_quality_block():
    prompt = compose("q", _profile(), Intent.GENERAL)
    assert "- Total Rows: 1,234,567" in prompt
    assert "- Columns: revenue, region, day" in prompt
    assert "- File Name: sales.csv" in prompt
    assert "- File Size: 2 KB" in prompt
    assert "- Missing Values: revenue: 2" in prompt
    assert "- Duplicate Rows: 1" in prompt


def test_sample_rows_truncated_to_three_compact_rows():
    prompt = compose("q", _profile(), Intent.GENERAL)
    assert 'Row 1: {"revenue":0,"region":"North"}' in prompt
    assert "Row 3:" in prompt
    assert "Row 4:" not in prompt


def test_malformed_maps_degrade_instead_of_raising():
    raw = {
        "summary": {
            "statistics": ["not", "a", "map"],
            "dataQuality": {"missingValues": [1, 2, 3], "duplicates": "x"},
        }
    }
    prompt = compose("q", raw, Intent.INSIGHTS)
    assert "No statistics available" in prompt
    assert "- Missing Values: None" in prompt
    assert "- Duplicate Rows: 0" in prompt


def test_missing_profile_uses_placeholders():
    prompt = compose("What is in here?", None, Intent.GENERAL)
    assert "- Total Rows: Unknown" in prompt
    assert "- File Name: Unknown" in prompt
    assert "No sample data available" in prompt
    assert "## USER QUESTION:\nWhat is in here?" in prompt


def test_instruction_block_follows_intent():
    assert "PRESENTATION INSTRUCTIONS" in compose("q", None, Intent.PRESENTATION)
    assert "Slide 6: Conclusion" in compose("q", None, Intent.PRESENTATION)
    vis = compose("q", None, Intent.VISUALIZATION)
    assert "VISUALIZATION INSTRUCTIONS" in vis
    assert "x-axis and y-axis" in vis
    ins = compose("q", None, Intent.INSIGHTS)
    assert "## RESPONSE TYPE: INSIGHTS" in ins
    assert "### Next Steps" in ins
    assert "GENERAL INSTRUCTIONS" in compose("q", None, Intent.GENERAL)


def test_format_file_size():
    assert format_file_size(None) == "Unknown"
    assert format_file_size(500) == "500 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(5 * 1024 * 1024) == "5 MB"
