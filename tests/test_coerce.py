import math
import pytest
from plan_pilot.coerce import clamp_confidence, coerce_args, coerce_plan, parse_point

# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw, expected", [(-0.3, 0.0), (1.7, 1.0), ("abc", 0.6), (None, 0.6), ("0.25", 0.25), (0.8, 0.8)])
def test_clamp_confidence(raw, expected):
    assert clamp_confidence(raw) == expected

def test_clamp_confidence_nan_defaults():
    assert clamp_confidence(float("nan")) == 0.6

# ---------------------------------------------------------------------------
# Positional argument recovery
# ---------------------------------------------------------------------------

def test_named_args_pass_through():
    args = {"url": "https://example.com"}
    assert coerce_args("navigate", args) is args

def test_navigate_first_element_is_url():
    assert coerce_args("navigate", ["<https://example.com>"]) == {"url": "https://example.com"}

def test_scalar_args_treated_as_single_element():
    assert coerce_args("click", " submit ") == {"id": "submit"}

def test_drag_points_from_strings_and_pairs():
    args = coerce_args("drag", ["10,20", [30, 40]])
    assert args == {"from": {"x": 10.0, "y": 20.0}, "to": {"x": 30.0, "y": 40.0}}

def test_type_positional():
    assert coerce_args("type", ["email", "jane@example.com"]) == {"id": "email", "text": "jane@example.com"}

def test_hotkey_from_chord_string():
    assert coerce_args("hotkey", ["Control+Shift+T"]) == {"keys": ["Control", "Shift", "T"]}
    assert coerce_args("hotkey", [["Meta", "a"]]) == {"keys": ["Meta", "a"]}

def test_long_press_default_duration():
    assert coerce_args("long_press", ["0.5 0.5"]) == {"point": {"x": 0.5, "y": 0.5}, "durationMs": 800}

def test_unknown_tool_returns_raw_value():
    assert coerce_args("teleport", ["somewhere"]) == ["somewhere"]

def test_parse_point_rejects_garbage():
    assert parse_point("left side") is None
    assert parse_point(42) is None
    point = parse_point({"x": "abc", "y": 3})
    assert math.isnan(point["x"]) and point["y"] == 3.0

# ---------------------------------------------------------------------------
# Plan-level coercion
# ---------------------------------------------------------------------------

def test_legacy_fields_are_mapped():
    plan = coerce_plan(
        {
            "summary": "do it",
            "planId": "p-1",
            "autonomyLevel": "semi_auto",
            "steps": [{"tool": " click ", "args": ["go"], "risk": "LOW", "reason": "press go", "score": 2}],
        }
    )
    assert plan["reasoning_summary"] == "do it"
    assert plan["plan_id"] == "p-1"
    assert plan["autonomy_level"] == "semi_auto"
    assert plan["steps"] == [
        {"tool": "click", "args": {"id": "go"}, "explanation": "press go", "estimated_risk": "low", "confidence": 1.0}
    ]

def test_autonomy_precedence():
    assert coerce_plan({"autonomy_level": "auto", "autonomyLevel": "semi_auto"}, "assisted")["autonomy_level"] == "auto"
    assert coerce_plan({"autonomyLevel": "semi_auto"}, "auto")["autonomy_level"] == "semi_auto"
    assert coerce_plan({}, "auto")["autonomy_level"] == "auto"
    assert coerce_plan({}, None)["autonomy_level"] == "assisted"

def test_plan_id_generated_when_absent():
    first = coerce_plan({"steps": []})["plan_id"]
    second = coerce_plan({"steps": []})["plan_id"]
    assert first.startswith("plan-") and first != second

def test_missing_risk_defaults_to_medium():
    step = coerce_plan({"steps": [{"tool": "snapshot", "args": {}}]})["steps"][0]
    assert step["estimated_risk"] == "medium"
    assert step["confidence"] == 0.6
    assert step["explanation"] == ""

def test_unknown_top_level_keys_are_kept_for_the_schema():
    assert coerce_plan({"notes": "x"})["notes"] == "x"
