# harness.py
# Plan-then-execute session.
#
# The Session is the kernel. The model is a passive responder; this class
# owns all control flow, state, and policy decisions.
#
# Control flow:
#   goal → snapshot → planner (≤2 attempts) | precomputed plan
#   → normalize → guardrail check → confirm hook
#   → sequential dispatch → exactly one RunOutcome
#
# All terminal output is delegated to display.py.

from collections.abc import Callable
from typing import Any

from plan_pilot import display
from plan_pilot.catalog import build_tool_catalog
from plan_pilot.config import Settings
from plan_pilot.context import KillSignal, OriginHook, RunContext, ask_hook
from plan_pilot.driver import BrowserDriver
from plan_pilot.errors import ConfigurationError, ExecutionError, Killed, PlanError, PolicyError, UnsupportedToolError
from plan_pilot.guardrails import build_policy_hint, load_guardrails, validate_plan
from plan_pilot.models import ExecutionRecord, Interactable, Plan, RunOutcome, Step
from plan_pilot.normalizer import normalize
from plan_pilot.planner import PlanGenerator, validate_plan_document
from plan_pilot.snapshot import collect_snapshot
from plan_pilot.tools import TOOLS

PlanHook = Callable[[Plan], Any]


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


async def execute_step(step: Step, ctx: RunContext) -> str:
    """
    Run one step: rate limit, cancellation checkpoint, then dispatch.

    Raises Killed, or ExecutionError (and whatever the driver raises) on
    failure. Never retries.
    """
    await ctx.enforce_rate_limit()
    ctx.check_killed()

    handler = TOOLS.get(step.tool)
    if handler is None:
        raise UnsupportedToolError(step.tool)
    try:
        return await handler(dict(step.args), ctx)
    finally:
        ctx.mark_action_done()


async def execute_plan(plan: Plan, ctx: RunContext, records: list[ExecutionRecord] | None = None) -> list[ExecutionRecord]:
    """
    Strictly sequential execution loop. The first failing step aborts the
    whole plan; records completed so far are left in `records`.
    """
    records = [] if records is None else records
    total = len(plan.steps)

    display.execution_start(total)

    for index, step in enumerate(plan.steps):
        ctx.check_killed()
        display.step_start(index, total, step)
        observation = await execute_step(step, ctx)
        display.step_observation(observation)
        records.append(
            ExecutionRecord(
                step_index=index,
                tool=step.tool,
                args=dict(step.args),
                explanation=step.explanation,
                observation=observation or "",
            )
        )
    return records


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session:
    """
    One configured pilot. Each call to run() is an independent run with its
    own RunContext; the driver passed in must not be shared with another
    concurrent run.

    Example:
        session = Session(Settings.from_env(), confirm_plan=lambda plan: True)
        async with launch_session(headless=True) as driver:
            outcome = await session.run("Open example.com and take a snapshot", driver)
    """

    def __init__(
        self,
        settings: Settings,
        confirm_plan: PlanHook | None,
        confirm_origin_change: OriginHook | None = None,
        kill_signal: KillSignal | None = None,
        generator: PlanGenerator | None = None,
    ) -> None:
        if confirm_plan is None:
            raise ConfigurationError("confirm_plan hook is required")
        self.settings = settings
        self.confirm_plan = confirm_plan
        self.confirm_origin_change = confirm_origin_change
        self.kill_signal = kill_signal or KillSignal()
        self.generator = generator or PlanGenerator(
            model=settings.model,
            base_url=settings.base_url,
            api_key=settings.api_key,
        )

        self.guardrails = load_guardrails(settings.guardrails_path, settings.profile)
        self.catalog = build_tool_catalog(self.guardrails.profile_name)
        self.policy_hint = build_policy_hint(self.guardrails.profile, self.catalog)
        display.guardrail_profile(self.guardrails.profile_name, self.guardrails.source)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def _plan(
        self, goal: str, driver: BrowserDriver, precomputed: Any
    ) -> tuple[Plan, str, tuple[Interactable, ...]]:
        autonomy = self.guardrails.profile.autonomy_level
        if precomputed is not None:
            return validate_plan_document(precomputed, autonomy), "precomputed", ()

        display.planning_start(goal, self.generator.model)
        snapshot = await collect_snapshot(driver)
        plan, raw = await self.generator.generate(
            goal,
            snapshot,
            self.policy_hint,
            self.catalog,
            autonomy,
            prompt_variant=self.settings.prompt_variant,
            capability=self.guardrails.profile_name,
        )
        display.llm_raw(raw, self.settings.llm_log)
        return plan, "planner", tuple(snapshot.page.interactables)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, goal: str, driver: BrowserDriver, precomputed_plan: Any = None) -> RunOutcome:
        """
        Full pipeline entry point.

        Returns a RunOutcome in all cases; plan, policy and execution
        failures never propagate past this method.
        """
        profile = self.guardrails.profile

        try:
            plan, source, interactables = await self._plan(goal, driver, precomputed_plan)
        except PlanError as exc:
            display.planner_error(exc)
            return RunOutcome(status="planner_error", error=exc.code, detail=exc.as_detail())

        plan = normalize(plan, driver.viewport_size(), notify=display.step_skipped)
        if not plan.steps:
            display.halt("No executable steps left after normalization.")
            return RunOutcome(status="planner_error", error="no_executable_steps", plan=plan)

        try:
            validate_plan(plan, profile, self.catalog)
        except PolicyError as exc:
            display.policy_block(exc)
            return RunOutcome(status="policy_block", error=exc.code, detail=exc.as_detail(), plan=plan)

        display.plan_ready(plan, source)
        if not await ask_hook(self.confirm_plan, plan):
            display.halt("Plan rejected by user.")
            return RunOutcome(status="rejected_by_user", plan=plan)

        ctx = RunContext(
            driver=driver,
            kill_signal=self.kill_signal,
            interactables=interactables,
            require_origin_confirmation=profile.require_origin_confirmation,
            confirm_origin_change=self.confirm_origin_change,
            artifacts_dir=self.settings.artifacts_dir,
            min_action_interval_ms=self.settings.min_action_interval_ms,
            cookie_dismiss=self.settings.cookie_dismiss,
            notify=display.note,
        )
        records: list[ExecutionRecord] = []
        try:
            await execute_plan(plan, ctx, records)
        except Killed:
            display.killed()
            return RunOutcome(status="killed", plan=plan, records=records)
        except Exception as exc:
            index = len(records)
            error = str(exc) if isinstance(exc, ExecutionError) else f"{type(exc).__name__}: {exc}"
            display.step_failed(index, plan.steps[index].tool, error)
            return RunOutcome(
                status="failed",
                error=error,
                detail={"step": index, "tool": plan.steps[index].tool},
                plan=plan,
                records=records,
            )

        outcome = RunOutcome(status="ok", plan=plan, records=records)
        display.outcome(outcome)
        return outcome
