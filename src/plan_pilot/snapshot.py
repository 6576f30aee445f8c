# snapshot.py
# Assembles the read-only ContextSnapshot the planner consumes.

import base64
from urllib.parse import urlsplit

from pydantic import ValidationError

from plan_pilot import display
from plan_pilot.driver import BrowserDriver
from plan_pilot.models import ContextSnapshot, Interactable, PageContext, Viewport, VisualContext

MAX_INTERACTABLES = 150

INTERACTABLES_SCRIPT = """
() => {
  const nodes = Array.from(document.querySelectorAll(
    'button, a, input, textarea, select, [role="button"], [role="link"], [role="textbox"], [contenteditable="true"]'
  ));
  return nodes.slice(0, %d).map((el, idx) => {
    const rect = el.getBoundingClientRect();
    const id = el.id || '';
    const role = el.getAttribute('role') || el.tagName.toLowerCase();
    const type = el.getAttribute('type') || el.tagName.toLowerCase();
    const aria = el.getAttribute('aria-label') || '';
    const placeholder = el.getAttribute('placeholder') || '';
    const text = (el.innerText || '').trim();
    const label = aria || placeholder || text.slice(0, 120) || id || `${role}-${idx}`;
    const locatorHint = id ? `#${id}` : text ? text.slice(0, 50) : label.slice(0, 50);
    return {
      id: id || label || `node-${idx}`,
      role, type, label, locatorHint,
      bbox: {
        x: rect.x, y: rect.y, width: rect.width, height: rect.height,
        centerX: rect.x + rect.width / 2, centerY: rect.y + rect.height / 2
      }
    };
  });
}
""" % MAX_INTERACTABLES

DEVICE_SCALE_SCRIPT = "() => window.devicePixelRatio"


def origin_of(url: str | None) -> str:
    """scheme://host[:port], or "" for urls without a network origin."""
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return ""
    origin = f"{parts.scheme}://{parts.hostname}"
    if parts.port is not None:
        origin += f":{parts.port}"
    return origin


async def collect_interactables(driver: BrowserDriver) -> list[Interactable]:
    # Collection is best-effort: a page that refuses the script yields no candidates.
    try:
        raw = await driver.evaluate(INTERACTABLES_SCRIPT)
        return [Interactable.model_validate(item) for item in raw or []]
    except (ValidationError, TypeError) as exc:
        display.note(f"interactables malformed: {exc}")
    except Exception as exc:
        display.note(f"interactables unavailable: {exc}")
    return []


async def collect_snapshot(driver: BrowserDriver, include_screenshot: bool = True) -> ContextSnapshot:
    url = driver.url()
    viewport = driver.viewport_size() or {}

    try:
        scale = await driver.evaluate(DEVICE_SCALE_SCRIPT)
    except Exception:
        scale = None

    screenshot = None
    if include_screenshot:
        try:
            screenshot = base64.b64encode(await driver.screenshot(full_page=True)).decode("ascii")
        except Exception as exc:
            display.note(f"screenshot unavailable: {exc}")

    try:
        title = await driver.title()
    except Exception:
        title = ""

    return ContextSnapshot(
        page=PageContext(
            url=url,
            origin=origin_of(url),
            title=title,
            interactables=await collect_interactables(driver),
        ),
        visual=VisualContext(
            screenshot=screenshot,
            viewport=Viewport(
                width=viewport.get("width"),
                height=viewport.get("height"),
                device_scale_factor=scale if isinstance(scale, (int, float)) else None,
            ),
        ),
    )
