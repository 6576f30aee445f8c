import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from plan_pilot.config import Settings
from plan_pilot.context import KillSignal, RunContext
from plan_pilot.errors import ConfigurationError, Killed, PlanError, UnsupportedToolError
from plan_pilot.harness import Session, execute_plan, execute_step
from plan_pilot.models import Step
from plan_pilot.tools import TOOLS


def _doc(*steps):
    return {
        "reasoning_summary": "scripted",
        "plan_id": "plan-fixed",
        "autonomy_level": "assisted",
        "steps": [
            {"tool": tool, "args": args, "explanation": f"{tool} step", "estimated_risk": "low", "confidence": 0.9}
            for tool, args in steps
        ],
    }


def _session(tmp_path, confirm_plan=lambda plan: True, **kwargs):
    settings = Settings(min_action_interval_ms=kwargs.pop("interval", 0), artifacts_dir=str(tmp_path),
                        profile=kwargs.pop("profile", "conservative"))
    kwargs.setdefault("generator", MagicMock(model="test-model"))
    return Session(settings, confirm_plan=confirm_plan, **kwargs)

# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def test_execute_step_returns_observation(driver):
    step = Step(tool="scroll", args={"deltaY": 120}, explanation="", estimated_risk="low", confidence=0.5)
    ctx = RunContext(driver=driver, min_action_interval_ms=0)
    assert asyncio.run(execute_step(step, ctx)) == "scrolled 120"
    assert ctx.last_action_at is not None

def test_execute_step_unsupported_tool(driver):
    step = Step(tool="scroll", args={}, explanation="", estimated_risk="low", confidence=0.5)
    with patch.dict(TOOLS):
        del TOOLS["scroll"]
        with pytest.raises(UnsupportedToolError, match="unsupported_tool_scroll"):
            asyncio.run(execute_step(step, RunContext(driver=driver)))
    assert driver.calls == []

def test_execute_plan_records_each_step(driver, plan_of):
    plan = plan_of(("navigate", {"url": "https://example.com"}), ("scroll", {"deltaY": 50}))
    records = asyncio.run(execute_plan(plan, RunContext(driver=driver, min_action_interval_ms=0)))
    assert [r.step_index for r in records] == [0, 1]
    assert records[1].tool == "scroll"
    assert records[1].observation == "scrolled 50"

def test_rate_limit_spaces_actions(driver, plan_of):
    plan = plan_of(("scroll", {}), ("scroll", {}), ("scroll", {}))
    asyncio.run(execute_plan(plan, RunContext(driver=driver, min_action_interval_ms=60)))
    gaps = [b - a for a, b in zip(driver.times, driver.times[1:])]
    assert all(gap >= 0.055 for gap in gaps)

def test_kill_before_step_executes_nothing(driver, plan_of):
    signal = KillSignal()
    signal.trigger()
    with pytest.raises(Killed):
        asyncio.run(execute_plan(plan_of(("scroll", {})), RunContext(driver=driver, kill_signal=signal)))
    assert driver.calls == []

# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

def test_session_requires_confirm_hook(tmp_path):
    with pytest.raises(ConfigurationError):
        _session(tmp_path, confirm_plan=None)

def test_precomputed_plan_runs_to_ok(tmp_path, driver):
    doc = _doc(("navigate", {"url": "https://example.com"}), ("wait_for_idle", {"timeoutMs": 10}), ("snapshot", {}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))

    assert outcome.status == "ok"
    assert outcome.ok
    assert [r.tool for r in outcome.records] == ["navigate", "wait_for_idle", "snapshot"]
    assert len(list(tmp_path.glob("snapshot-*.png"))) == 1

def test_blocked_tool_never_touches_driver(tmp_path, driver):
    doc = _doc(("navigate", {"url": "https://example.com"}), ("shell", {"cmd": "rm -rf /"}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))

    assert outcome.status == "policy_block"
    assert outcome.error == "tool_blocked"
    assert outcome.detail["details"] == {"step": 1, "tool": "shell"}
    assert driver.calls == []

def test_password_field_blocked(tmp_path, driver):
    doc = _doc(("type", {"id": "password", "text": "hunter2"}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))
    assert outcome.status == "policy_block"
    assert outcome.error == "password_field_blocked"

def test_rejected_plan_executes_nothing(tmp_path, driver):
    hook = AsyncMock(return_value=False)
    doc = _doc(("navigate", {"url": "https://example.com"}))
    outcome = asyncio.run(_session(tmp_path, confirm_plan=hook).run("demo", driver, precomputed_plan=doc))

    assert outcome.status == "rejected_by_user"
    hook.assert_awaited_once()
    assert hook.await_args.args[0].plan_id == "plan-fixed"
    assert driver.calls == []

def test_bad_precomputed_plan_is_planner_error(tmp_path, driver):
    doc = _doc(("teleport", {}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))
    assert outcome.status == "planner_error"
    assert outcome.error == "schema_validation_failed"
    assert driver.calls == []

def test_all_steps_dropped_is_planner_error(tmp_path, driver):
    doc = _doc(("click_point", {"point": {"x": "left", "y": 4}}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))
    assert outcome.status == "planner_error"
    assert outcome.error == "no_executable_steps"

def test_generated_plan_normalized_before_dispatch(tmp_path, make_driver, plan_of):
    driver = make_driver(viewport={"width": 1000, "height": 800})
    generator = MagicMock(model="test-model")
    generator.generate = AsyncMock(return_value=(plan_of(("click_point", {"point": {"x": 0.1, "y": 0.2}})), "{}"))

    outcome = asyncio.run(_session(tmp_path, generator=generator).run("click it", driver))

    assert outcome.status == "ok"
    assert ("mouse_click", 100, 160, "left") in driver.calls
    kwargs = generator.generate.await_args.kwargs
    assert kwargs["capability"] == "conservative"

def test_generator_failure_is_planner_error(tmp_path, driver):
    generator = MagicMock(model="test-model")
    generator.generate = AsyncMock(side_effect=PlanError("invalid_json", raw="nope"))
    outcome = asyncio.run(_session(tmp_path, generator=generator).run("demo", driver))
    assert outcome.status == "planner_error"
    assert outcome.error == "invalid_json"
    assert outcome.detail["raw"] == "nope"

def test_failed_step_aborts_with_partial_records(tmp_path, driver):
    doc = _doc(("navigate", {"url": "https://example.com"}), ("click", {"id": "missing"}), ("scroll", {}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))

    assert outcome.status == "failed"
    assert outcome.error == "selector_not_found"
    assert outcome.detail == {"step": 1, "tool": "click"}
    assert len(outcome.records) == 1
    assert "wheel" not in driver.names()

def test_denied_origin_change_aborts_run(tmp_path, driver):
    deny = MagicMock(return_value=False)
    doc = _doc(("navigate", {"url": "https://a.example/"}), ("navigate", {"url": "https://b.example/"}))
    outcome = asyncio.run(_session(tmp_path, confirm_origin_change=deny).run("demo", driver, precomputed_plan=doc))

    assert outcome.status == "failed"
    assert outcome.error == "origin_change_denied"
    deny.assert_called_once_with("https://a.example", "https://b.example")
    assert driver.names() == ["goto"]

def test_approved_origin_change_continues(tmp_path, driver):
    doc = _doc(("navigate", {"url": "https://a.example/"}), ("navigate", {"url": "https://b.example/"}))
    session = _session(tmp_path, confirm_origin_change=lambda a, b: True)
    outcome = asyncio.run(session.run("demo", driver, precomputed_plan=doc))
    assert outcome.status == "ok"
    assert driver.names() == ["goto", "goto"]

def test_kill_during_wait_is_reported(tmp_path, driver):
    signal = KillSignal()
    doc = _doc(("wait_for_idle", {"timeoutMs": 5000}), ("scroll", {}))
    session = _session(tmp_path, kill_signal=signal)

    async def scenario():
        asyncio.get_running_loop().call_later(0.05, signal.trigger)
        return await session.run("demo", driver, precomputed_plan=doc)

    outcome = asyncio.run(scenario())
    assert outcome.status == "killed"
    assert outcome.records == []
    assert driver.calls == []

def test_markup_like_text_does_not_break_run(tmp_path, driver):
    doc = _doc(("scroll", {"deltaY": 10}))
    doc["reasoning_summary"] = "skip the [bold]banner[/x]"
    doc["steps"][0]["explanation"] = "scroll past [/footer] block"
    outcome = asyncio.run(_session(tmp_path).run("read [/goal]", driver, precomputed_plan=doc))
    assert outcome.status == "ok"

def test_markup_like_error_is_reported(tmp_path, driver):
    doc = _doc(("click", {"id": "[/missing]"}))
    outcome = asyncio.run(_session(tmp_path).run("demo", driver, precomputed_plan=doc))
    assert outcome.status == "failed"
    assert outcome.error == "selector_not_found"

def test_fallback_ignores_elements_from_previous_page(tmp_path, make_driver, plan_of):
    driver = make_driver(
        url="https://a.example/",
        interactables=[{"id": "delete-account", "label": "Delete account", "bbox": {"centerX": 20, "centerY": 20}}],
    )
    generator = MagicMock(model="test-model")
    plan = plan_of(("navigate", {"url": "https://a.example/other"}), ("click", {"id": "delete-account"}))
    generator.generate = AsyncMock(return_value=(plan, "{}"))

    outcome = asyncio.run(_session(tmp_path, generator=generator).run("demo", driver))

    assert outcome.status == "failed"
    assert outcome.error == "selector_not_found"
    assert "mouse_click" not in driver.names()

def test_cookie_dismiss_setting_reaches_navigation(tmp_path, make_driver):
    driver = make_driver(banners={("Reject all", "button")})
    settings = Settings(min_action_interval_ms=0, artifacts_dir=str(tmp_path), cookie_dismiss=True)
    session = Session(settings, confirm_plan=lambda plan: True, generator=MagicMock(model="test-model"))
    outcome = asyncio.run(session.run("demo", driver, precomputed_plan=_doc(("navigate", {"url": "https://a.example/"}))))

    assert outcome.status == "ok"
    assert ("try_click", "Reject all", "button") in driver.calls

def test_rate_limit_wait_is_cancellable(driver):
    signal = KillSignal()
    ctx = RunContext(driver=driver, kill_signal=signal, min_action_interval_ms=60_000)
    ctx.mark_action_done()

    async def scenario():
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, signal.trigger)
        started = loop.time()
        with pytest.raises(Killed):
            await ctx.enforce_rate_limit()
        return loop.time() - started

    assert asyncio.run(scenario()) < 1.0
