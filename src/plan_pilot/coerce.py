# coerce.py
# Recovers the canonical plan shape from legacy field names and positional
# step arguments before schema validation. Nothing here decides validity:
# whatever cannot be coerced is left for the schema to reject.

import json
import math
import re
import uuid
from collections.abc import Callable
from typing import Any

DEFAULT_AUTONOMY = "assisted"
DEFAULT_CONFIDENCE = 0.6
DEFAULT_RISK = "medium"

_PLAN_ALIASES = {
    "reasoning_summary": ("reasoning_summary", "summary"),
    "plan_id": ("plan_id", "planId"),
    "autonomy_level": ("autonomy_level", "autonomyLevel", "capability_profile"),
}
_STEP_ALIASES = {
    "estimated_risk": ("estimated_risk", "risk", "risk_level"),
    "explanation": ("explanation", "reason"),
    "confidence": ("confidence", "score"),
}


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _clean(value: Any) -> Any:
    """Strip whitespace and a wrapping <...> placeholder from strings."""
    if not isinstance(value, str):
        return value
    return re.sub(r"^<(.+)>$", r"\1", value.strip())


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def parse_point(value: Any) -> dict[str, float] | None:
    """Accept {x, y}, "x,y" / "x y" strings, or [x, y] pairs."""
    if isinstance(value, dict):
        if "x" in value and "y" in value:
            return {"x": _to_float(value["x"]), "y": _to_float(value["y"])}
        return None
    if isinstance(value, str):
        parts = [p for p in re.split(r"[,\s]+", value.strip()) if p]
        numbers = [_to_float(p) for p in parts]
    elif isinstance(value, (list, tuple)):
        numbers = [_to_float(p) for p in value]
    else:
        return None
    if len(numbers) >= 2 and all(math.isfinite(n) for n in numbers[:2]):
        return {"x": numbers[0], "y": numbers[1]}
    return None


def clamp_confidence(value: Any) -> float:
    number = _to_float(value)
    if not math.isfinite(number):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, number))


def new_plan_id() -> str:
    return f"plan-{uuid.uuid4()}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def _first(data: dict, names: tuple[str, ...]) -> Any:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


# ---------------------------------------------------------------------------
# Positional argument table
# ---------------------------------------------------------------------------


def _at(items: list, index: int, default: Any = None) -> Any:
    return items[index] if index < len(items) else default


def _hotkey_keys(items: list) -> list[str]:
    if items and isinstance(items[0], list):
        return items[0]
    joined = " ".join(str(item) for item in items)
    return [key for key in re.split(r"[+\s]+", joined) if key]


ARG_COERCERS: dict[str, Callable[[list], dict[str, Any]]] = {
    "navigate": lambda a: {"url": _clean(_at(a, 0))},
    "click": lambda a: {"id": _clean(_at(a, 0))},
    "click_point": lambda a: {"point": parse_point(_at(a, 0))},
    "drag": lambda a: {"from": parse_point(_at(a, 0)), "to": parse_point(_at(a, 1)), "durationMs": _at(a, 2)},
    "type": lambda a: {"id": _clean(_at(a, 0)), "text": _at(a, 1)},
    "hotkey": lambda a: {"keys": _hotkey_keys(a)},
    "long_press": lambda a: {"point": parse_point(_at(a, 0)), "durationMs": _at(a, 1) or 800},
    "scroll": lambda a: {"deltaY": _at(a, 0) if _at(a, 0) is not None else _at(a, 1)},
    "wait_for_idle": lambda a: {"timeoutMs": _at(a, 0)},
    "snapshot": lambda a: {},
    "fetch": lambda a: {"url": _clean(_at(a, 0)), "method": _at(a, 1), "body": _at(a, 2), "headers": _at(a, 3)},
    "read_file": lambda a: {"path": _clean(_at(a, 0)), "encoding": _at(a, 1) or "utf-8"},
    "write_file": lambda a: {"path": _clean(_at(a, 0)), "content": _at(a, 1, ""), "encoding": _at(a, 2) or "utf-8"},
    "shell": lambda a: {"cmd": _at(a, 0), "timeoutMs": _at(a, 1)},
}


def coerce_args(tool: str, args: Any) -> Any:
    """
    Return a named-argument mapping for `tool`.

    Mappings pass through untouched. Positional lists (or a bare scalar) are
    mapped through the per-tool table; a tool without an entry gets its raw
    value back so the schema reports it.
    """
    if isinstance(args, dict):
        return args
    coercer = ARG_COERCERS.get(tool)
    if coercer is None:
        return args
    if args is None:
        items: list = []
    elif isinstance(args, (list, tuple)):
        items = list(args)
    else:
        items = [args]
    return {key: value for key, value in coercer(items).items() if value is not None}


# ---------------------------------------------------------------------------
# Plan-level coercion
# ---------------------------------------------------------------------------


def coerce_step(step: Any) -> Any:
    if not isinstance(step, dict):
        return step
    tool = step.get("tool").strip() if isinstance(step.get("tool"), str) else step.get("tool", "")
    risk = _first(step, _STEP_ALIASES["estimated_risk"])
    explanation = _first(step, _STEP_ALIASES["explanation"])
    consumed = {"tool", "args", *(name for names in _STEP_ALIASES.values() for name in names)}

    coerced = {key: value for key, value in step.items() if key not in consumed}
    coerced.update(
        tool=tool,
        args=coerce_args(tool, step.get("args")),
        explanation=explanation if isinstance(explanation, str) else "",
        estimated_risk=risk.lower() if isinstance(risk, str) else DEFAULT_RISK,
        confidence=clamp_confidence(_first(step, _STEP_ALIASES["confidence"])),
    )
    return coerced


def coerce_plan(data: Any, autonomy_default: str | None = None) -> Any:
    """
    Map legacy field names onto the wire shape and fill generated defaults.

    autonomy_level precedence: explicit field, then legacy aliases, then
    `autonomy_default`, then "assisted". Unknown top-level keys are kept so
    the schema can reject them.
    """
    if not isinstance(data, dict):
        return data

    autonomy = next(
        (data[name] for name in _PLAN_ALIASES["autonomy_level"] if isinstance(data.get(name), str) and data[name]),
        None,
    )
    plan_id = _first(data, _PLAN_ALIASES["plan_id"])
    steps = data.get("steps")
    consumed = {name for names in _PLAN_ALIASES.values() for name in names} | {"steps"}

    coerced = {key: value for key, value in data.items() if key not in consumed}
    coerced.update(
        reasoning_summary=_text(_first(data, _PLAN_ALIASES["reasoning_summary"])),
        plan_id=_text(plan_id) if plan_id is not None else new_plan_id(),
        autonomy_level=autonomy or autonomy_default or DEFAULT_AUTONOMY,
        steps=[coerce_step(step) for step in steps] if isinstance(steps, list) else [],
    )
    return coerced
