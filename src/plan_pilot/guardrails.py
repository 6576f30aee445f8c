# guardrails.py
# Named policy bundles and the validator that gates plans against them.
#
# The validator never looks at how a plan was produced: generated and
# precomputed plans pass through the same checks.

import os
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from plan_pilot.catalog import TEXT_ENTRY_TOOLS, tool_names
from plan_pilot.errors import PolicyError
from plan_pilot.models import GuardrailProfile, Plan, ToolCatalogEntry

BUILTIN_SOURCE = "built-in-default"
DEFAULT_PROFILE = "conservative"

# Substrings that mark an element identifier as a password field.
PASSWORD_MARKERS = ("password", "pwd")

DEFAULT_PROFILES: dict[str, dict[str, Any]] = {
    "conservative": {
        "description": "Conservative defaults for manual review",
        "max_steps": 12,
        "blocked_tools": ["shell", "write_file"],
        "allow_password": False,
        "require_origin_confirmation": True,
        "autonomy_level": "assisted",
    },
    "lenient": {
        "description": "Lenient but still safe profile",
        "max_steps": 25,
        "blocked_tools": ["shell", "write_file"],
        "allow_password": False,
        "require_origin_confirmation": True,
        "autonomy_level": "semi_auto",
    },
    "high_autonomy": {
        "description": "Highest autonomy; no tool blocks",
        "max_steps": 30,
        "blocked_tools": [],
        "allow_password": True,
        "require_origin_confirmation": False,
        "autonomy_level": "auto",
    },
    "maximal": {
        "description": "Unrestricted. User accepts full risk.",
        "max_steps": 40,
        "blocked_tools": [],
        "allow_password": True,
        "require_origin_confirmation": False,
        "autonomy_level": "auto",
    },
    "mobile": {
        "description": "Mobile/touch profile with coordinate tools enabled, shell blocked",
        "max_steps": 25,
        "blocked_tools": ["shell", "write_file"],
        "allow_password": False,
        "require_origin_confirmation": True,
        "autonomy_level": "semi_auto",
    },
}


class GuardrailDocument(BaseModel):
    """A parsed guardrail document: profile name → profile."""

    source: str = BUILTIN_SOURCE
    profiles: dict[str, GuardrailProfile] = Field(default_factory=dict)


class ActiveGuardrails(BaseModel):
    source: str
    profile_name: str
    profile: GuardrailProfile


# ---------------------------------------------------------------------------
# Document loading
# ---------------------------------------------------------------------------


def _build_document(profiles: dict[str, Any], source: str) -> GuardrailDocument:
    return GuardrailDocument(
        source=source,
        profiles={
            name: GuardrailProfile.model_validate({**(fields or {}), "name": name})
            for name, fields in profiles.items()
        },
    )


def default_document(source: str = BUILTIN_SOURCE) -> GuardrailDocument:
    return _build_document(DEFAULT_PROFILES, source)


def load_guardrail_document(config_path: str | None) -> GuardrailDocument:
    """
    Load a YAML guardrail document.

    A missing path falls back to the built-in profiles. A file that cannot
    be parsed or validated also falls back, with the error recorded in
    `source`. Loading never raises.
    """
    if not config_path:
        return default_document()

    resolved = os.path.abspath(config_path)
    if not os.path.exists(resolved):
        return default_document()

    try:
        with open(resolved, encoding="utf-8") as fh:
            parsed = yaml.safe_load(fh)
        if not isinstance(parsed, dict):
            raise ValueError("document is not a mapping")
        profiles = parsed.get("profiles")
        if not isinstance(profiles, dict) or not profiles:
            raise ValueError("document has no profiles")
        return _build_document(profiles, resolved)
    except (OSError, TypeError, yaml.YAMLError, ValueError, ValidationError) as exc:
        return default_document(f"{resolved} (parse_error: {exc})")


def select_profile(doc: GuardrailDocument, profile_name: str | None) -> tuple[str, GuardrailProfile]:
    """Requested profile, else the conservative default, else the first one listed."""
    if profile_name and profile_name in doc.profiles:
        return profile_name, doc.profiles[profile_name]
    if DEFAULT_PROFILE in doc.profiles:
        return DEFAULT_PROFILE, doc.profiles[DEFAULT_PROFILE]
    if doc.profiles:
        first = next(iter(doc.profiles))
        return first, doc.profiles[first]
    builtin = default_document()
    return DEFAULT_PROFILE, builtin.profiles[DEFAULT_PROFILE]


def load_guardrails(config_path: str | None, profile_name: str | None) -> ActiveGuardrails:
    doc = load_guardrail_document(config_path)
    selected, profile = select_profile(doc, profile_name)
    return ActiveGuardrails(source=doc.source, profile_name=selected, profile=profile)


# ---------------------------------------------------------------------------
# Prompt hint
# ---------------------------------------------------------------------------


def build_policy_hint(profile: GuardrailProfile, catalog: list[ToolCatalogEntry]) -> str:
    lines: list[str] = []
    if profile.description:
        lines.append(profile.description)
    if catalog:
        lines.append(f"Allowed tools: {', '.join(tool_names(catalog))}.")
    lines.append(f"Do not propose more than {profile.max_steps} steps.")
    if profile.blocked_tools:
        lines.append(f"Never use tools: {', '.join(sorted(profile.blocked_tools))}.")
    if not profile.allow_password:
        lines.append('Never type into password/secret fields or ids containing "password" or "pwd".')
    if profile.require_origin_confirmation:
        lines.append("Avoid cross-origin navigation unless clearly necessary.")
    if profile.autonomy_level:
        lines.append(f"Target autonomy level: {profile.autonomy_level}.")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def looks_like_password_field(identifier: Any) -> bool:
    # String heuristic on the identifier only; the element type is never inspected.
    text = str(identifier or "").lower()
    return any(marker in text for marker in PASSWORD_MARKERS)


def validate_plan(plan: Plan, profile: GuardrailProfile, catalog: list[ToolCatalogEntry]) -> None:
    """
    Check `plan` against `profile` and the catalog in force.

    Fail-fast: raises PolicyError for the first violation found. Returns None
    when the plan may run.
    """
    if len(plan.steps) > profile.max_steps:
        raise PolicyError("max_steps_exceeded", max=profile.max_steps, actual=len(plan.steps))

    allowed = set(tool_names(catalog))
    for index, step in enumerate(plan.steps):
        if step.tool not in allowed:
            raise PolicyError("unknown_tool", step=index, tool=step.tool)
        if step.tool in profile.blocked_tools:
            raise PolicyError("tool_blocked", step=index, tool=step.tool)
        if (
            step.tool in TEXT_ENTRY_TOOLS
            and not profile.allow_password
            and looks_like_password_field(step.args.get("id"))
        ):
            raise PolicyError("password_field_blocked", step=index, tool=step.tool)
