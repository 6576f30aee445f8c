# display.py
# All terminal output for the plan pilot.
#
# This module owns presentation entirely. The harness never formats
# strings; it calls named functions here.
#
# Colour language:
#   cyan    session / planning events
#   yellow  execution steps
#   green   success / confirmed
#   red     failures, halts, policy blocks
#   dim     raw model output and notes

import json

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from plan_pilot.errors import PlanError, PolicyError
from plan_pilot.models import Plan, RunOutcome, Step

console = Console()

RAW_SNIPPET_CHARS = 600


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def banner(model: str, base_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Plan Pilot[/bold cyan]\n"
            "[dim]Guardrailed plan-then-execute browser automation[/dim]\n\n"
            f"[dim]Model    :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]Endpoint :[/dim] [white]{escape(base_url)}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def guardrail_profile(name: str, source: str) -> None:
    console.print(f"[dim]Guardrail profile: {escape(name)} (source: {escape(source)})[/dim]")


def planning_start(goal: str, model: str) -> None:
    console.print()
    console.print(Rule("[cyan]PLANNING[/cyan]", style="cyan"))
    console.print(f'[cyan]Planning for goal: "{escape(goal)}"[/cyan] [dim](model: {escape(model)})[/dim]')


def llm_raw(raw: str, mode: str) -> None:
    if mode == "off" or not raw:
        return
    text = raw if mode == "full" else _mono(raw, RAW_SNIPPET_CHARS)
    console.print(f"[dim]LLM raw response: {escape(text)}[/dim]", highlight=False)


def planner_error(exc: PlanError) -> None:
    details = json.dumps(exc.details) if isinstance(exc.details, (list, dict)) else exc.details
    lines = [f"[bold red]Planner error ({escape(exc.code)})[/bold red]"]
    if details:
        lines.append(f"[white]details={escape(_mono(str(details), 400))}[/white]")
    if exc.raw:
        lines.append(f"[dim]Raw: {escape(_mono(exc.raw, 400))}[/dim]")
    console.print()
    console.print(Panel("\n".join(lines), title=_label("PLANNER ERROR", "red"), border_style="red", padding=(0, 2)))


def step_skipped(message: str) -> None:
    console.print(f"  [yellow]↷ {escape(message)}[/yellow]")


def note(message: str) -> None:
    console.print(f"  [dim]{escape(_mono(message, 400))}[/dim]", highlight=False)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


def policy_block(exc: PolicyError) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]Plan blocked by guardrails: {escape(exc.code)}[/bold red]\n"
            f"[white]details={escape(json.dumps(exc.details))}[/white]",
            title=_label("POLICY BLOCK ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def plan_ready(plan: Plan, source: str) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("#", justify="center", width=4)
    table.add_column("Tool", style="bold white", width=13)
    table.add_column("Args", style="dim white", width=36)
    table.add_column("Risk", width=7)
    table.add_column("Conf", justify="right", width=5)
    table.add_column("Explanation", style="white")

    for index, step in enumerate(plan.steps):
        table.add_row(
            str(index + 1),
            step.tool,
            escape(_mono(json.dumps(step.args), 34)),
            step.estimated_risk,
            f"{step.confidence:.2f}",
            escape(step.explanation),
        )

    console.print(
        Panel(
            table,
            title=_label(f"PLAN READY ({source})", "cyan"),
            subtitle=f"[dim]{escape(plan.plan_id)} · {plan.autonomy_level}[/dim]",
            border_style="cyan",
            padding=(0, 1),
        )
    )
    if plan.reasoning_summary:
        console.print(f"[dim]  {escape(plan.reasoning_summary)}[/dim]")


# ---------------------------------------------------------------------------
# Execution loop
# ---------------------------------------------------------------------------


def execution_start(total: int) -> None:
    console.print()
    console.print(Rule(f"[yellow]EXECUTION: {total} step(s)[/yellow]", style="yellow"))


def step_start(index: int, total: int, step: Step) -> None:
    console.print(
        f"[bold yellow]  STEP [{index + 1}/{total}][/bold yellow]  [white]{step.tool}[/white]"
        f"  [dim]{escape(_mono(json.dumps(step.args), 80))}[/dim]"
    )


def step_observation(observation: str) -> None:
    if observation:
        console.print(f"  [green]↳[/green] [white]{escape(_mono(observation, 140))}[/white]", highlight=False)


def step_failed(index: int, tool: str, error: str) -> None:
    halt(f"Step {index + 1} ({tool}) failed: {error}")


def killed() -> None:
    halt("Stopped by kill switch.")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


def outcome(result: RunOutcome) -> None:
    color = "green" if result.ok else "red"
    body = f"[bold white]{result.status}[/bold white]"
    if result.error:
        body += f"\n[white]{escape(result.error)}[/white]"
    if result.records:
        body += f"\n[dim]{len(result.records)} step(s) executed[/dim]"
    console.print()
    console.print(Panel(body, title=_label("RESULT", color), border_style=color, padding=(0, 2)))
    console.print()


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
