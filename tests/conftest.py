import time

import pytest

from plan_pilot.errors import SelectorNotFoundError


class FakeDriver:
    """In-memory BrowserDriver that records every primitive call."""

    def __init__(self, url: str = "about:blank", viewport=None, known=(), interactables=None, banners=()) -> None:
        self._url = url
        self._viewport = viewport if viewport is not None else {"width": 1280, "height": 720}
        self.known = set(known)
        self.interactables = interactables or []
        # (label, role) pairs a consent probe can click; role None means visible text
        self.banners = set(banners)
        self.probes: list[tuple] = []
        self.calls: list[tuple] = []
        self.times: list[float] = []

    def _record(self, *call) -> None:
        self.calls.append(call)
        self.times.append(time.monotonic())

    def url(self) -> str:
        return self._url

    def viewport_size(self):
        return self._viewport

    async def title(self) -> str:
        return "Fake"

    async def goto(self, url: str):
        self._record("goto", url)
        self._url = url
        return 200

    async def click(self, key: str) -> None:
        if key not in self.known:
            raise SelectorNotFoundError(key)
        self._record("click", key)

    async def fill(self, key: str, text: str) -> None:
        if key not in self.known:
            raise SelectorNotFoundError(key)
        self._record("fill", key, text)

    async def try_click(self, label, role=None) -> bool:
        self.probes.append((label, role))
        if (label, role) not in self.banners:
            return False
        self._record("try_click", label, role)
        return True

    async def mouse_move(self, x, y, steps=1) -> None:
        self._record("mouse_move", x, y, steps)

    async def mouse_down(self, button="left") -> None:
        self._record("mouse_down", button)

    async def mouse_up(self, button="left") -> None:
        self._record("mouse_up", button)

    async def mouse_click(self, x, y, button="left") -> None:
        self._record("mouse_click", x, y, button)

    async def wheel(self, delta_x, delta_y) -> None:
        self._record("wheel", delta_x, delta_y)

    async def key_down(self, key) -> None:
        self._record("key_down", key)

    async def key_up(self, key) -> None:
        self._record("key_up", key)

    async def insert_text(self, text) -> None:
        self._record("insert_text", text)

    async def screenshot(self, path=None, full_page=True) -> bytes:
        self._record("screenshot", path)
        if path:
            with open(path, "wb") as fh:
                fh.write(b"\x89PNG")
        return b"\x89PNG"

    async def evaluate(self, script):
        if "devicePixelRatio" in script:
            return 1
        return self.interactables

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def make_driver():
    return FakeDriver


def _plan_of(*steps) -> "Plan":
    from plan_pilot.models import Plan, Step

    return Plan(
        reasoning_summary="test plan",
        plan_id="plan-test",
        autonomy_level="assisted",
        steps=[
            Step(tool=tool, args=args, explanation=f"{tool} step", estimated_risk="low", confidence=0.9)
            for tool, args in steps
        ],
    )


@pytest.fixture
def plan_of():
    """plan_of(("navigate", {"url": ...}), ("click", {"id": ...}))"""
    return _plan_of
