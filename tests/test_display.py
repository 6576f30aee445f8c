from rich.console import Console

from plan_pilot import display
from plan_pilot.errors import PlanError, PolicyError
from plan_pilot.models import Plan, RunOutcome, Step


def _capture(monkeypatch) -> Console:
    console = Console(record=True, width=200)
    monkeypatch.setattr(display, "console", console)
    return console


def test_model_text_is_printed_literally(monkeypatch):
    console = _capture(monkeypatch)
    plan = Plan(
        reasoning_summary="close [/dialog] first",
        plan_id="plan-[x]",
        autonomy_level="assisted",
        steps=[Step(tool="scroll", args={"note": "[/y]"}, explanation="past [/footer]", estimated_risk="low", confidence=0.5)],
    )
    display.plan_ready(plan, "planner")
    display.llm_raw("raw [/z] output", "full")
    display.note("shell stderr: [/err]")

    text = console.export_text()
    assert "close [/dialog] first" in text
    assert "past [/footer]" in text
    assert "raw [/z] output" in text
    assert "[/err]" in text

def test_errors_are_printed_literally(monkeypatch):
    console = _capture(monkeypatch)
    display.planner_error(PlanError("invalid_json", details="bad [/json]", raw="[/raw]"))
    display.policy_block(PolicyError("tool_blocked", step=0, tool="shell"))
    display.outcome(RunOutcome(status="failed", error="ValueError: [/boom]"))
    display.halt("Step 1 (click) failed: [/halt]")

    text = console.export_text()
    assert "bad [/json]" in text
    assert "[/boom]" in text
    assert "[/halt]" in text
