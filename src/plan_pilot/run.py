# run.py
# Entry point. Config and wiring only.
#
# Point PLAN_PILOT_BASE_URL at any OpenAI-compatible endpoint
# (a local Ollama server by default).

import asyncio
import json
import os
import signal
import sys

from rich.markup import escape
from rich.prompt import Confirm

from plan_pilot import display
from plan_pilot.config import Settings
from plan_pilot.context import KillSignal
from plan_pilot.driver import launch_session
from plan_pilot.harness import Session
from plan_pilot.models import Plan

DEFAULT_GOAL = "Navigate to https://example.com, wait_for_idle for 800ms, then snapshot."


def _console_hooks(auto_approve: bool):
    async def confirm_plan(plan: Plan) -> bool:
        if auto_approve:
            return True
        return await asyncio.to_thread(Confirm.ask, "Approve plan?", default=False)

    async def confirm_origin_change(from_origin: str, to_origin: str) -> bool:
        if auto_approve:
            return True
        prompt = f"Origin change detected: {escape(from_origin)} -> {escape(to_origin)}. Proceed?"
        return await asyncio.to_thread(Confirm.ask, prompt, default=False)

    return confirm_plan, confirm_origin_change


def _install_kill_switch(kill_signal: KillSignal) -> None:
    def on_sigint() -> None:
        if kill_signal.aborted:
            os._exit(1)
        kill_signal.trigger()
        display.halt("Kill switch triggered. Stopping after current action…")

    asyncio.get_running_loop().add_signal_handler(signal.SIGINT, on_sigint)


async def run_goals(goals: list[str], settings: Settings, plan_path: str | None = None) -> None:
    kill_signal = KillSignal()
    _install_kill_switch(kill_signal)
    confirm_plan, confirm_origin_change = _console_hooks(settings.auto_approve)
    session = Session(
        settings,
        confirm_plan=confirm_plan,
        confirm_origin_change=confirm_origin_change,
        kill_signal=kill_signal,
    )

    precomputed = None
    if plan_path:
        with open(plan_path, encoding="utf-8") as fh:
            precomputed = json.load(fh)

    for goal in goals:
        if kill_signal.aborted:
            break
        # Each goal gets its own browser session.
        async with launch_session(headless=settings.headless) as driver:
            result = await session.run(goal, driver, precomputed_plan=precomputed)
        print(f"\n[RESULT]\n{result.model_dump_json(indent=2, exclude={'plan'})}\n")


def main() -> None:
    settings = Settings.from_env()
    display.banner(settings.model, settings.base_url)
    goal = " ".join(sys.argv[1:]).strip() or DEFAULT_GOAL
    asyncio.run(run_goals([goal], settings, plan_path=os.getenv("PLAN_PILOT_PLAN")))


if __name__ == "__main__":
    main()
