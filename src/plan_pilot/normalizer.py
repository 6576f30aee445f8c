# normalizer.py
# Resolves point arguments of coordinate tools against the live viewport.
#
# Absolute pixels pass through; points with both components in [-1, 1] are
# viewport fractions. Every resolved point is clipped to the viewport.
# A step whose points cannot be resolved is dropped, not failed.

import math
from collections.abc import Callable
from typing import Any

from plan_pilot.models import Plan, Step

FALLBACK_VIEWPORT = {"width": 1280, "height": 720}

# tool -> argument keys holding points
POINT_ARGS: dict[str, tuple[str, ...]] = {
    "click_point": ("point",),
    "drag": ("from", "to"),
    "long_press": ("point",),
}


def viewport_dimensions(viewport: dict[str, Any] | None) -> tuple[float, float]:
    viewport = viewport or {}
    width = viewport.get("width") or FALLBACK_VIEWPORT["width"]
    height = viewport.get("height") or FALLBACK_VIEWPORT["height"]
    return float(width), float(height)


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def resolve_point(point: Any, width: float, height: float) -> dict[str, float] | None:
    """Return the absolute, clipped point, or None if it is missing or non-finite."""
    if not isinstance(point, dict):
        return None
    x, y = point.get("x"), point.get("y")
    if not (_finite(x) and _finite(y)):
        return None
    if abs(x) <= 1 and abs(y) <= 1:
        x, y = x * width, y * height
    return {
        "x": min(max(float(x), 0.0), width),
        "y": min(max(float(y), 0.0), height),
    }


def normalize_step(step: Step, width: float, height: float) -> Step | None:
    keys = POINT_ARGS.get(step.tool)
    if not keys:
        return step
    resolved = {key: resolve_point(step.args.get(key), width, height) for key in keys}
    if any(point is None for point in resolved.values()):
        return None
    return step.model_copy(update={"args": {**step.args, **resolved}})


def normalize(
    plan: Plan,
    viewport: dict[str, Any] | None,
    notify: Callable[[str], None] | None = None,
) -> Plan:
    """
    Return a new plan with coordinate steps resolved and clipped.

    Steps that cannot be resolved are skipped and reported through `notify`.
    The input plan is not modified. The result may have no steps left.
    """
    width, height = viewport_dimensions(viewport)
    steps: list[Step] = []
    for index, step in enumerate(plan.steps):
        fixed = normalize_step(step, width, height)
        if fixed is None:
            if notify:
                notify(f"skip step {index + 1}: invalid {step.tool} point")
            continue
        steps.append(fixed)
    # Built without validation: dropping steps may leave an empty plan.
    return plan.model_copy(update={"steps": steps})
