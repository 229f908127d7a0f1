from datavista.intent import Intent
from datavista.schemas import (
    CategoricalStat,
    ChatRequest,
    ChatResponse,
    NumericStat,
    OtherStat,
    coerce_profile,
)


def test_non_mapping_payload_is_rejected():
    assert coerce_profile(None) is None
    assert coerce_profile([1, 2, 3]) is None
    assert coerce_profile("profile") is None


def test_summary_shape_is_flattened():
    profile = coerce_profile({
        "summary": {
            "totalRows": 42,
            "tableName": "orders",
            "statistics": {"qty": {"type": "numeric", "mean": 3}},
        },
        "fileName": "orders.csv",
    })
    assert profile.row_count == 42
    assert profile.table_name == "orders"
    assert profile.file_name == "orders.csv"
    assert isinstance(profile.statistics["qty"], NumericStat)


def test_non_map_sections_become_empty():
    profile = coerce_profile({
        "statistics": ["not", "a", "map"],
        "dataQuality": {"missingValues": 7, "duplicates": "n/a"},
        "overview": "broken",
        "sample": "nope",
    })
    assert profile.statistics == {}
    assert profile.data_quality.missing_values == {}
    assert profile.data_quality.duplicates == 0
    assert profile.overview.columns == []
    assert profile.sample == []


def test_column_stats_are_coerced():
    profile = coerce_profile({
        "statistics": {
            "price": {"type": "numeric", "mean": "abc", "stdDev": float("nan"), "min": 1},
            "city": {"type": "categorical", "unique": "12", "topValues": "none"},
            "blob": {"type": "binary", "count": 3},
            "junk": 5,
        }
    })
    price = profile.statistics["price"]
    assert price.mean is None
    assert price.std_dev is None
    city = profile.statistics["city"]
    assert isinstance(city, CategoricalStat)
    assert city.unique_count == 12
    assert city.top_values == []
    assert profile.statistics["blob"] == OtherStat(type="binary", count=3)
    assert isinstance(profile.statistics["junk"], OtherStat)


def test_chat_request_accepts_wire_names():
    req = ChatRequest.model_validate({"message": "hi", "analysisData": {"a": 1}})
    assert req.analysis_data == {"a": 1}


def test_chat_response_wire_shape():
    resp = ChatResponse(
        message="m",
        timestamp=1,
        response_type=Intent.INSIGHTS,
        title="t",
        action_data={"recommendations": []},
    )
    assert resp.to_wire() == {
        "message": "m",
        "timestamp": 1,
        "responseType": "insights",
        "title": "t",
        "actionData": {"recommendations": []},
    }


def test_non_finite_numeric_strings_become_defaults():
    profile = coerce_profile({
        "summary": {
            "overview": {"totalRows": "Infinity", "totalColumns": "-inf"},
            "statistics": {
                "city": {"type": "categorical", "count": "1e999", "unique": "inf"},
                "qty": {"type": "numeric", "count": "nan", "mean": 2},
            },
            "dataQuality": {"duplicates": "1e999"},
        }
    })
    assert profile.row_count is None
    assert profile.overview.total_columns is None
    assert profile.statistics["city"].count is None
    assert profile.statistics["city"].unique_count is None
    assert profile.statistics["qty"].count is None
    assert profile.data_quality.duplicates == 0
