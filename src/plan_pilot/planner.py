# planner.py
# Plan generation from an OpenAI-compatible inference endpoint.
#
# Control flow:
#   goal + context → request → parse → coerce → schema
#   → on failure, append the rejected output plus a correction and retry once
#
# No browser interaction happens here.

import json
import re
from typing import Any

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from plan_pilot.coerce import DEFAULT_AUTONOMY, coerce_plan
from plan_pilot.errors import PlanError
from plan_pilot.models import ALLOWED_TOOLS, ContextSnapshot, Plan, ToolCatalogEntry

MAX_ATTEMPTS = 2
PROMPT_INTERACTABLES = 50
RAW_SNIPPET = 400


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = f"""\
You are a planning engine. You do NOT execute actions; you ONLY return structured plans using registered tools.

Output rules:
- Return a single JSON object only (no code fences, no text outside the JSON).
- Fields: reasoning_summary (string), plan_id (string), autonomy_level ("assisted" | "semi_auto" | "auto"), \
steps (array of {{ tool, args, explanation, estimated_risk, confidence }}).
- tool must be one of: {", ".join(ALLOWED_TOOLS)}.
- estimated_risk is "low" | "medium" | "high".
- confidence is a number between 0 and 1.
- Do not invent tools or bypass policy hints.\
"""

PROMPT_TEMPLATES: dict[str, list[str]] = {
    "computer": [
        "You are a desktop/web UI operator.",
        "Use mouse-like actions (click_point/drag/scroll), keyboard (type/hotkey), DOM-aware actions "
        "(navigate/click/type), and utility tools (snapshot/fetch/files/shell if allowed).",
        "Prefer semantic DOM tools when an id/label is provided; otherwise fall back to coordinate tools.",
        "Interactable list may include bounding boxes (bbox); use them to choose points when IDs are missing.",
        "Avoid hallucinating elements; plan only with given goal/context.",
    ],
    "mobile": [
        "You are a mobile/touch UI operator.",
        "Use touch actions (click_point as tap, long_press, drag for swipe), scroll, type, hotkey only when clearly supported.",
        "Assume soft keyboard; avoid multi-window desktop assumptions.",
        "Keep actions minimal and sequential.",
    ],
    "grounding": [
        "Return only the minimal actions needed to fulfill the goal based on the screenshot and interactables.",
        "Do not add explanations unrelated to actions.",
        "Use coordinate tools when DOM ids are missing.",
    ],
}

OUTPUT_REMINDER = (
    "Return ONLY one JSON object with fields reasoning_summary, plan_id, autonomy_level, "
    "steps[{tool,args,explanation,estimated_risk,confidence}].\n\n"
    "Do not include code fences or any other text."
)

REPAIR_PROMPT = (
    "The previous response was invalid. Respond again with ONLY one JSON object that is a valid "
    "instance of the schema (no code fences, no extra text)."
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def pick_prompt_variant(capability: str | None, requested: str | None = None) -> str:
    if requested in PROMPT_TEMPLATES:
        return requested
    capability = (capability or "").lower()
    if "mobile" in capability or "touch" in capability:
        return "mobile"
    return "computer"


def trim_context(context: ContextSnapshot | None) -> dict[str, Any] | None:
    """Prompt-sized view of the snapshot: capped interactables, no screenshot bytes."""
    if context is None:
        return None
    data = context.model_dump(by_alias=True, exclude_none=True)
    data["page"]["interactables"] = data["page"]["interactables"][:PROMPT_INTERACTABLES]
    if data["visual"].pop("screenshot", None):
        data["visual"]["screenshot_attached"] = True
    return data


def build_messages(
    goal: str,
    context: ContextSnapshot | None,
    policy_hint: str,
    catalog: list[ToolCatalogEntry],
    capability: str | None,
    prompt_variant: str | None = None,
) -> list[dict[str, str]]:
    variant = pick_prompt_variant(capability, prompt_variant)
    tool_list = ", ".join(f"{entry.name} (risk: {entry.risk_level})" for entry in catalog)
    trimmed = trim_context(context)

    sections = [
        f"Goal: {goal}",
        f"Capability profile: {capability}" if capability else None,
        f"Mode: {variant}",
        "\n".join(PROMPT_TEMPLATES[variant]),
        f"Allowed tools: {tool_list or ', '.join(ALLOWED_TOOLS)}",
        f"Policy constraints:\n{policy_hint}" if policy_hint else None,
        f"Context:\n{json.dumps(trimmed, indent=2)}" if trimmed else None,
        OUTPUT_REMINDER,
    ]
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n".join(s for s in sections if s)},
    ]


def parse_plan_content(content: str | None) -> dict[str, Any]:
    """
    Parse a model response as one JSON object.
    Raises PlanError("invalid_json") on any parse failure.
    """
    raw = (content or "").strip()
    # Strip markdown code blocks if the model added them anyway
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*", "", raw)
        raw = re.sub(r"\s*```$", "", raw)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PlanError("invalid_json", details=str(exc), raw=content) from exc
    if not isinstance(data, dict):
        raise PlanError("invalid_json", details="response is not a JSON object", raw=content)
    return data


def _schema_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors(include_url=False)
    ]


def validate_plan_document(data: Any, autonomy_default: str | None = None, raw: str | None = None) -> Plan:
    """
    Coerce and schema-check a plan document.
    Raises PlanError("schema_validation_failed") with the validator's errors.
    """
    try:
        return Plan.model_validate(coerce_plan(data, autonomy_default))
    except ValidationError as exc:
        raise PlanError("schema_validation_failed", details=_schema_errors(exc), raw=raw) from exc


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class PlanGenerator:
    """
    Turns a goal and page context into a validated Plan.

    Example:
        generator = PlanGenerator(model="llama3.1", base_url="http://localhost:11434/v1")
        plan, raw = await generator.generate(goal, snapshot, hint, catalog, "assisted")
    """

    def __init__(self, model: str, base_url: str | None = None, api_key: str | None = None) -> None:
        self.model = model
        # Local OpenAI-compatible servers ignore the key but the client requires one.
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key or "not-needed")

    async def call_model(self, messages: list[dict[str, str]]) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    async def generate(
        self,
        goal: str,
        context: ContextSnapshot | None,
        policy_hint: str,
        catalog: list[ToolCatalogEntry],
        autonomy_default: str | None = DEFAULT_AUTONOMY,
        prompt_variant: str | None = None,
        capability: str | None = None,
    ) -> tuple[Plan, str]:
        """
        Generate a plan, allowing one repair retry.

        Returns (plan, raw_response). Raises PlanError: invalid_goal,
        inference_error, or, after the second failed attempt, invalid_json or
        schema_validation_failed with a truncated raw snippet.
        """
        if not isinstance(goal, str) or not goal.strip():
            raise PlanError("invalid_goal", details="Goal must be a non-empty string")

        transcript = build_messages(
            goal, context, policy_hint, catalog, capability, prompt_variant
        )
        failure: PlanError | None = None

        for _attempt in range(MAX_ATTEMPTS):
            try:
                raw = await self.call_model(transcript)
            except OpenAIError as exc:
                raise PlanError("inference_error", details=str(exc)) from exc

            try:
                data = parse_plan_content(raw)
                return validate_plan_document(data, autonomy_default, raw), raw
            except PlanError as exc:
                failure = exc

            transcript = [
                *transcript,
                {"role": "assistant", "content": raw},
                {"role": "user", "content": REPAIR_PROMPT},
            ]

        raise PlanError(failure.code, details=failure.details, raw=(failure.raw or "")[:RAW_SNIPPET])
