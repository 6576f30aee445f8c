# tools.py
# Tool registry: one async handler per tool, all with the same
# (args, ctx) -> observation signature. The dispatcher imports TOOLS and
# never branches on tool names itself.
#
# Handlers check mechanics only. Whether a tool may run at all is decided
# by the guardrail layer before execution starts.

import asyncio
import os
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import httpx

from plan_pilot.context import RunContext, ask_hook
from plan_pilot.errors import (
    MissingArgumentError,
    OriginChangeDeniedError,
    SelectorNotFoundError,
    ShellCommandError,
)
from plan_pilot.matching import bbox_center, find_interactable
from plan_pilot.snapshot import origin_of

Handler = Callable[[dict[str, Any], RunContext], Awaitable[str]]

DEFAULT_WAIT_MS = 800
DEFAULT_DRAG_MS = 400
DEFAULT_LONG_PRESS_MS = 800
DEFAULT_SCROLL = 500
DRAG_MOVE_STEPS = 10
SHELL_TIMEOUT_MS = 15000
FETCH_TIMEOUT_S = 30
PREVIEW_CHARS = 400

# Probed first as button names, then as visible text.
COOKIE_LABELS = (
    "Reject all",
    "Reject",
    "Accept all",
    "Accept",
    "Allow all",
    "Agree",
    "I agree",
    "Continue without accepting",
    "Continue without consenting",
)


def _require(tool: str, args: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = args.get(name)
        if value not in (None, ""):
            return value
    raise MissingArgumentError(tool, names[0] if names[0] != "point" else "xy")


def _number(value: Any, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _fallback_point(ctx: RunContext, key: str) -> tuple[float, float] | None:
    return bbox_center(getattr(find_interactable(ctx.interactables, key), "bbox", None))


async def dismiss_cookies(ctx: RunContext) -> str | None:
    """Best-effort click on a consent banner. Returns the label clicked, if any."""
    for role in ("button", None):
        for label in COOKIE_LABELS:
            if await ctx.driver.try_click(label, role=role):
                ctx.log(f"cookie dismiss: clicked \"{label}\"")
                return label
    return None


# ---------------------------------------------------------------------------
# Page tools
# ---------------------------------------------------------------------------


async def _tool_navigate(args: dict[str, Any], ctx: RunContext) -> str:
    url = _require("navigate", args, "url", "href", "target", "to")
    target = origin_of(url)
    if ctx.require_origin_confirmation and ctx.current_origin and target != ctx.current_origin:
        allowed = ctx.confirm_origin_change is not None and await ask_hook(
            ctx.confirm_origin_change, ctx.current_origin, target
        )
        if not allowed:
            raise OriginChangeDeniedError(ctx.current_origin, target)

    status = await ctx.driver.goto(url)
    ctx.current_origin = origin_of(ctx.driver.url())
    # Element geometry belongs to the page it was collected from.
    ctx.interactables = ()
    observation = f"navigated ({status or 'no response'}) -> {ctx.driver.url()}"
    if ctx.cookie_dismiss:
        label = await dismiss_cookies(ctx)
        if label:
            observation += f"; cookie banner dismissed ({label})"
    return observation


async def _tool_click(args: dict[str, Any], ctx: RunContext) -> str:
    key = _require("click", args, "id")
    try:
        await ctx.driver.click(key)
        return f"clicked {key}"
    except SelectorNotFoundError:
        point = _fallback_point(ctx, key)
        if point is None:
            raise
    await ctx.driver.mouse_click(*point)
    return f"clicked {key} via bbox at ({point[0]:.0f}, {point[1]:.0f})"


async def _tool_type(args: dict[str, Any], ctx: RunContext) -> str:
    key = _require("type", args, "id")
    text = str(args.get("text") or "")
    try:
        await ctx.driver.fill(key, text)
        return f"typed {len(text)} chars into {key}"
    except SelectorNotFoundError:
        point = _fallback_point(ctx, key)
        if point is None:
            raise
    await ctx.driver.mouse_click(*point)
    await ctx.driver.insert_text(text)
    return f"typed {len(text)} chars via bbox at ({point[0]:.0f}, {point[1]:.0f})"


async def _tool_click_point(args: dict[str, Any], ctx: RunContext) -> str:
    point = _require("click_point", args, "point")
    button = args.get("button") or "left"
    count = max(1, int(_number(args.get("clickCount"), 1)))
    await ctx.driver.mouse_move(point["x"], point["y"])
    for _ in range(count):
        await ctx.driver.mouse_click(point["x"], point["y"], button=button)
    return f"{button} click x{count} at ({point['x']:.0f}, {point['y']:.0f})"


async def _tool_drag(args: dict[str, Any], ctx: RunContext) -> str:
    start = _require("drag", args, "from")
    end = _require("drag", args, "to")
    hold_ms = _number(args.get("durationMs"), DEFAULT_DRAG_MS)
    await ctx.driver.mouse_move(start["x"], start["y"])
    await ctx.driver.mouse_down()
    try:
        await ctx.driver.mouse_move(end["x"], end["y"], steps=DRAG_MOVE_STEPS)
        await ctx.sleep(hold_ms)
    finally:
        await ctx.driver.mouse_up()
    return f"dragged ({start['x']:.0f}, {start['y']:.0f}) -> ({end['x']:.0f}, {end['y']:.0f})"


async def _tool_long_press(args: dict[str, Any], ctx: RunContext) -> str:
    point = _require("long_press", args, "point")
    hold_ms = _number(args.get("durationMs"), DEFAULT_LONG_PRESS_MS)
    await ctx.driver.mouse_move(point["x"], point["y"])
    await ctx.driver.mouse_down()
    try:
        await ctx.sleep(hold_ms)
    finally:
        await ctx.driver.mouse_up()
    return f"long press {hold_ms:.0f}ms at ({point['x']:.0f}, {point['y']:.0f})"


async def _tool_hotkey(args: dict[str, Any], ctx: RunContext) -> str:
    keys = args.get("keys")
    if not isinstance(keys, list) or not keys:
        raise MissingArgumentError("hotkey", "keys")
    for key in keys:
        await ctx.driver.key_down(key)
    for key in reversed(keys):
        await ctx.driver.key_up(key)
    return "+".join(keys)


async def _tool_scroll(args: dict[str, Any], ctx: RunContext) -> str:
    delta_y = _number(args.get("deltaY", args.get("y")), DEFAULT_SCROLL)
    await ctx.driver.wheel(0, delta_y)
    return f"scrolled {delta_y:.0f}"


async def _tool_wait_for_idle(args: dict[str, Any], ctx: RunContext) -> str:
    timeout_ms = _number(args.get("timeoutMs"), DEFAULT_WAIT_MS)
    await ctx.sleep(timeout_ms)
    return f"waited {timeout_ms:.0f}ms"


async def _tool_snapshot(args: dict[str, Any], ctx: RunContext) -> str:
    os.makedirs(ctx.artifacts_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    path = os.path.join(ctx.artifacts_dir, f"snapshot-{stamp}.png")
    await ctx.driver.screenshot(path=path, full_page=True)
    return f"snapshot saved: {path}"


# ---------------------------------------------------------------------------
# Host pass-through tools
# ---------------------------------------------------------------------------


async def _tool_fetch(args: dict[str, Any], ctx: RunContext) -> str:
    url = _require("fetch", args, "url")
    method = str(args.get("method") or "GET").upper()
    body = args.get("body")
    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_S) as client:
        response = await client.request(
            method,
            url,
            headers=args.get("headers") or {},
            content=body if isinstance(body, (str, bytes)) or body is None else None,
            json=body if isinstance(body, (dict, list)) else None,
        )
    preview = response.text[:PREVIEW_CHARS]
    return f"fetch {method} {url} -> {response.status_code}\n{preview}"


def _read_text(path: str, encoding: str) -> str:
    with open(path, encoding=encoding) as fh:
        return fh.read()


def _write_text(path: str, content: str, encoding: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding=encoding) as fh:
        fh.write(content)


async def _tool_read_file(args: dict[str, Any], ctx: RunContext) -> str:
    path = _require("read_file", args, "path")
    content = await asyncio.to_thread(_read_text, path, args.get("encoding") or "utf-8")
    return f"read_file {path} ({len(content)} chars)\n{content[:PREVIEW_CHARS]}"


async def _tool_write_file(args: dict[str, Any], ctx: RunContext) -> str:
    path = _require("write_file", args, "path")
    content = str(args.get("content") or "")
    await asyncio.to_thread(_write_text, path, content, args.get("encoding") or "utf-8")
    return f"write_file {path} ({len(content)} chars)"


async def _tool_shell(args: dict[str, Any], ctx: RunContext) -> str:
    cmd = _require("shell", args, "cmd")
    timeout_ms = _number(args.get("timeoutMs"), SHELL_TIMEOUT_MS)
    process = await asyncio.create_subprocess_shell(
        cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise ShellCommandError("timeout") from exc

    out = stdout.decode(errors="replace")
    err = stderr.decode(errors="replace")
    if err:
        ctx.log(f"shell stderr: {err[:PREVIEW_CHARS]}")
    if process.returncode != 0:
        raise ShellCommandError(str(process.returncode))
    return out[:800]


TOOLS: dict[str, Handler] = {
    "navigate":      _tool_navigate,
    "click":         _tool_click,
    "click_point":   _tool_click_point,
    "drag":          _tool_drag,
    "type":          _tool_type,
    "hotkey":        _tool_hotkey,
    "long_press":    _tool_long_press,
    "scroll":        _tool_scroll,
    "wait_for_idle": _tool_wait_for_idle,
    "snapshot":      _tool_snapshot,
    "fetch":         _tool_fetch,
    "read_file":     _tool_read_file,
    "write_file":    _tool_write_file,
    "shell":         _tool_shell,
}
