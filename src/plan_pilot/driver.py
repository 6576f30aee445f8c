# driver.py
# Browser driver boundary. The dispatcher only talks to BrowserDriver;
# PlaywrightDriver is the adapter used outside tests.

import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page, async_playwright

from plan_pilot.errors import SelectorNotFoundError

LOCATOR_PROBE_TIMEOUT_MS = 1500
CONSENT_PROBE_TIMEOUT_MS = 400
CONSENT_CLICK_TIMEOUT_MS = 800
ACTION_TIMEOUT_MS = 8000

_RAW_SELECTOR = re.compile(r"^([.#\[]|//)")


class BrowserDriver(Protocol):
    """The primitives a run needs from a browser session."""

    def url(self) -> str: ...

    def viewport_size(self) -> dict[str, int] | None: ...

    async def title(self) -> str: ...

    async def goto(self, url: str) -> int | None: ...

    async def click(self, key: str) -> None: ...

    async def fill(self, key: str, text: str) -> None: ...

    async def try_click(self, label: str, role: str | None = None) -> bool: ...

    async def mouse_move(self, x: float, y: float, steps: int = 1) -> None: ...

    async def mouse_down(self, button: str = "left") -> None: ...

    async def mouse_up(self, button: str = "left") -> None: ...

    async def mouse_click(self, x: float, y: float, button: str = "left") -> None: ...

    async def wheel(self, delta_x: float, delta_y: float) -> None: ...

    async def key_down(self, key: str) -> None: ...

    async def key_up(self, key: str) -> None: ...

    async def insert_text(self, text: str) -> None: ...

    async def screenshot(self, path: str | None = None, full_page: bool = True) -> bytes: ...

    async def evaluate(self, script: str) -> Any: ...


def _css_escape(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", lambda m: "\\" + m.group(0), value)


class PlaywrightDriver:
    """BrowserDriver over a single Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    # ------------------------------------------------------------------
    # Locator cascade
    # ------------------------------------------------------------------

    def _candidates(self, target: str) -> list[Locator]:
        page = self._page
        quoted = target.replace('"', '\\"')
        candidates = []
        if _RAW_SELECTOR.match(target):
            candidates.append(page.locator(target))
        candidates += [
            page.locator(f"#{_css_escape(target)}"),
            page.locator(f'[name="{quoted}"]'),
            page.get_by_label(target),
            page.locator(f'[placeholder="{quoted}"]'),
            page.get_by_text(target),
        ]
        return candidates

    async def resolve(self, key: str) -> Locator:
        """id → name → accessible label → placeholder → visible text."""
        target = str(key or "").strip()
        if not target:
            raise SelectorNotFoundError(target)
        for locator in self._candidates(target):
            try:
                handle = await locator.first.element_handle(timeout=LOCATOR_PROBE_TIMEOUT_MS)
            except PlaywrightError:
                continue
            if handle:
                return locator.first
        raise SelectorNotFoundError(target)

    # ------------------------------------------------------------------
    # Page
    # ------------------------------------------------------------------

    def url(self) -> str:
        return self._page.url

    def viewport_size(self) -> dict[str, int] | None:
        return self._page.viewport_size

    async def title(self) -> str:
        return await self._page.title()

    async def goto(self, url: str) -> int | None:
        response = await self._page.goto(url, wait_until="domcontentloaded")
        return response.status if response else None

    async def click(self, key: str) -> None:
        locator = await self.resolve(key)
        await locator.click(timeout=ACTION_TIMEOUT_MS)

    async def fill(self, key: str, text: str) -> None:
        locator = await self.resolve(key)
        await locator.fill(text, timeout=ACTION_TIMEOUT_MS)

    async def try_click(self, label: str, role: str | None = None) -> bool:
        """Click the first element named `label` (by role, or by visible text). Never raises."""
        page = self._page
        locator = (page.get_by_role(role, name=label) if role else page.get_by_text(label)).first
        try:
            handle = await locator.element_handle(timeout=CONSENT_PROBE_TIMEOUT_MS)
            if not handle:
                return False
            await locator.click(timeout=CONSENT_CLICK_TIMEOUT_MS)
        except PlaywrightError:
            return False
        return True

    # ------------------------------------------------------------------
    # Mouse and keyboard
    # ------------------------------------------------------------------

    async def mouse_move(self, x: float, y: float, steps: int = 1) -> None:
        await self._page.mouse.move(x, y, steps=steps)

    async def mouse_down(self, button: str = "left") -> None:
        await self._page.mouse.down(button=button)

    async def mouse_up(self, button: str = "left") -> None:
        await self._page.mouse.up(button=button)

    async def mouse_click(self, x: float, y: float, button: str = "left") -> None:
        await self._page.mouse.click(x, y, button=button)

    async def wheel(self, delta_x: float, delta_y: float) -> None:
        await self._page.mouse.wheel(delta_x, delta_y)

    async def key_down(self, key: str) -> None:
        await self._page.keyboard.down(key)

    async def key_up(self, key: str) -> None:
        await self._page.keyboard.up(key)

    async def insert_text(self, text: str) -> None:
        await self._page.keyboard.insert_text(text)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def screenshot(self, path: str | None = None, full_page: bool = True) -> bytes:
        return await self._page.screenshot(path=path, full_page=full_page)

    async def evaluate(self, script: str) -> Any:
        return await self._page.evaluate(script)


@asynccontextmanager
async def launch_session(headless: bool = False) -> AsyncIterator[PlaywrightDriver]:
    """
    Open an independent Chromium browser/context/page for one run.

    Concurrent runs must each open their own session; nothing is pooled.
    """
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            yield PlaywrightDriver(page)
        finally:
            await browser.close()
