# matching.py
# Fuzzy lookup over the last known interactables, used when the locator
# cascade cannot find a target. Pure functions over an explicit list.

from collections.abc import Sequence

from plan_pilot.models import BoundingBox, Interactable

MIN_MATCH_SCORE = 1.0

# Field weights: ids are the strongest signal, roles the weakest.
WEIGHTS = {"id": 1.2, "label": 1.0, "locator_hint": 0.8, "role": 0.5}


def score_text(text: str, key: str) -> float:
    if not text:
        return 0.0
    text = text.lower()
    if text == key:
        return 3.0
    if key in text:
        return 2.0
    if text in key:
        return 1.5
    return 0.0


def score_interactable(candidate: Interactable, key: str) -> float:
    key = key.lower()
    return sum(weight * score_text(getattr(candidate, field), key) for field, weight in WEIGHTS.items())


def find_interactable(interactables: Sequence[Interactable], key: str | None) -> Interactable | None:
    """Best-scoring candidate for `key`, or None below MIN_MATCH_SCORE."""
    if not key:
        return None
    best: Interactable | None = None
    best_score = 0.0
    for candidate in interactables:
        score = score_interactable(candidate, key)
        if score > best_score:
            best, best_score = candidate, score
    return best if best_score >= MIN_MATCH_SCORE else None


def bbox_center(bbox: BoundingBox | None) -> tuple[float, float] | None:
    if bbox is None:
        return None
    if bbox.center_x is not None and bbox.center_y is not None:
        return bbox.center_x, bbox.center_y
    if None not in (bbox.x, bbox.y, bbox.width, bbox.height):
        return bbox.x + bbox.width / 2, bbox.y + bbox.height / 2
    return None
