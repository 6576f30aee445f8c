# models.py
# Data contracts for the plan-then-execute browser pilot.
# Pure schema and validation.

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ALLOWED_TOOLS = (
    "navigate",
    "click",
    "click_point",
    "drag",
    "type",
    "hotkey",
    "long_press",
    "scroll",
    "wait_for_idle",
    "snapshot",
    "fetch",
    "read_file",
    "write_file",
    "shell",
)

ToolName = Literal[
    "navigate",
    "click",
    "click_point",
    "drag",
    "type",
    "hotkey",
    "long_press",
    "scroll",
    "wait_for_idle",
    "snapshot",
    "fetch",
    "read_file",
    "write_file",
    "shell",
]
RiskLevel = Literal["low", "medium", "high"]
AutonomyLevel = Literal["assisted", "semi_auto", "auto"]
RunStatus = Literal["ok", "rejected_by_user", "policy_block", "planner_error", "killed", "failed"]


# ---------------------------------------------------------------------------
# Page context
# ---------------------------------------------------------------------------


class BoundingBox(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None
    center_x: float | None = Field(default=None, alias="centerX")
    center_y: float | None = Field(default=None, alias="centerY")


class Interactable(BaseModel):
    """A candidate UI element. Ids are best-effort and unstable across snapshots."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = ""
    role: str = ""
    type: str = ""
    label: str = ""
    locator_hint: str = Field(default="", alias="locatorHint")
    bbox: BoundingBox | None = None


class Viewport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    width: int | None = None
    height: int | None = None
    device_scale_factor: float | None = Field(default=None, alias="deviceScaleFactor")


class PageContext(BaseModel):
    url: str = ""
    origin: str = ""
    title: str = ""
    interactables: list[Interactable] = Field(default_factory=list)


class VisualContext(BaseModel):
    screenshot: str | None = Field(default=None, description="Base64 PNG, if captured.")
    viewport: Viewport = Field(default_factory=Viewport)


class ContextSnapshot(BaseModel):
    """Read-only page state handed to the planner once per cycle."""

    page: PageContext = Field(default_factory=PageContext)
    visual: VisualContext = Field(default_factory=VisualContext)


# ---------------------------------------------------------------------------
# Catalog and policy
# ---------------------------------------------------------------------------


class ToolCatalogEntry(BaseModel):
    name: str
    schema_hint: str = Field(..., description="Argument shape shown to the planner.")
    risk_level: RiskLevel
    description: str = ""


class GuardrailProfile(BaseModel):
    name: str = ""
    description: str = ""
    max_steps: int = Field(..., gt=0)
    blocked_tools: frozenset[str] = Field(default_factory=frozenset)
    allow_password: bool = False
    require_origin_confirmation: bool = True
    autonomy_level: str = "assisted"


# ---------------------------------------------------------------------------
# Plan wire shape
# ---------------------------------------------------------------------------


class Step(BaseModel):
    """A single tool invocation in a plan."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tool: ToolName
    args: dict[str, Any]
    explanation: str
    estimated_risk: RiskLevel
    confidence: float = Field(..., ge=0, le=1)


class Plan(BaseModel):
    """A schema-conformant action sequence for one goal/context pair."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    reasoning_summary: str
    plan_id: str = Field(..., min_length=1)
    autonomy_level: AutonomyLevel
    steps: list[Step] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------


class ExecutionRecord(BaseModel):
    """Log entry produced after each executed step."""

    step_index: int
    tool: str
    args: dict[str, Any]
    explanation: str = ""
    observation: str = Field(default="", description="Output returned by the tool.")


class RunOutcome(BaseModel):
    """The single terminal result of a run."""

    status: RunStatus
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)
    plan: Plan | None = None
    records: list[ExecutionRecord] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "ok"
