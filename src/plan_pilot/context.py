# context.py
# Run-scoped mutable state, threaded explicitly through the dispatch loop.

import asyncio
import inspect
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from plan_pilot.driver import BrowserDriver
from plan_pilot.errors import Killed
from plan_pilot.models import Interactable

DEFAULT_MIN_ACTION_INTERVAL_MS = 250
WAIT_SLICE_MS = 100

OriginHook = Callable[[str, str], "bool | Awaitable[bool]"]


async def ask_hook(hook: Callable[..., Any], *args: Any) -> bool:
    """Call a human hook that may be sync or async."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


class KillSignal:
    """
    Cooperative cancellation flag.

    Set from anywhere (signal handler, another thread); polled by the run at
    checkpoints. An in-flight driver call is never interrupted.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def trigger(self) -> None:
        self._event.set()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()


@dataclass
class RunContext:
    driver: BrowserDriver
    kill_signal: KillSignal = field(default_factory=KillSignal)
    interactables: tuple[Interactable, ...] = ()
    require_origin_confirmation: bool = False
    confirm_origin_change: OriginHook | None = None
    artifacts_dir: str = "artifacts"
    min_action_interval_ms: int = DEFAULT_MIN_ACTION_INTERVAL_MS
    cookie_dismiss: bool = False
    notify: Callable[[str], None] | None = None
    # Owned by the single flow of this run.
    last_action_at: float | None = None
    current_origin: str | None = None

    def log(self, message: str) -> None:
        if self.notify:
            self.notify(message)

    def check_killed(self) -> None:
        if self.kill_signal.aborted:
            raise Killed()

    async def enforce_rate_limit(self) -> None:
        """Suspend until the minimum interval since the last action's completion has passed."""
        if self.last_action_at is None:
            return
        elapsed_ms = (time.monotonic() - self.last_action_at) * 1000
        if elapsed_ms < self.min_action_interval_ms:
            await self.sleep(self.min_action_interval_ms - elapsed_ms)

    def mark_action_done(self) -> None:
        self.last_action_at = time.monotonic()

    async def sleep(self, duration_ms: float) -> None:
        """Wait in bounded slices, checking the kill signal before each one."""
        remaining = max(0.0, float(duration_ms))
        while remaining > 0:
            self.check_killed()
            chunk = min(WAIT_SLICE_MS, remaining)
            await asyncio.sleep(chunk / 1000)
            remaining -= chunk
        self.check_killed()
