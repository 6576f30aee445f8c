# catalog.py
# Static tool catalog. The planner sees the catalog in force for a profile;
# the schema accepts the full vocabulary in models.ALLOWED_TOOLS.

from plan_pilot.models import ToolCatalogEntry

BASE_TOOL_CATALOG: tuple[ToolCatalogEntry, ...] = (
    ToolCatalogEntry(name="navigate", schema_hint="navigate({ url })", risk_level="medium", description="Change page"),
    ToolCatalogEntry(name="click", schema_hint="click({ id })", risk_level="low", description="Click element"),
    ToolCatalogEntry(
        name="click_point",
        schema_hint="click_point({ point:{x,y}, button?, clickCount? })",
        risk_level="medium",
        description="Click by screen coordinates",
    ),
    ToolCatalogEntry(
        name="drag",
        schema_hint="drag({ from:{x,y}, to:{x,y}, durationMs? })",
        risk_level="medium",
        description="Drag from A to B",
    ),
    ToolCatalogEntry(name="type", schema_hint="type({ id, text })", risk_level="medium", description="Fill text"),
    ToolCatalogEntry(name="hotkey", schema_hint="hotkey({ keys:string[] })", risk_level="medium", description="Send chorded keys"),
    ToolCatalogEntry(
        name="long_press",
        schema_hint="long_press({ point:{x,y}, durationMs? })",
        risk_level="medium",
        description="Press and hold at point",
    ),
    ToolCatalogEntry(name="scroll", schema_hint="scroll({ deltaY })", risk_level="low", description="Scroll viewport"),
    ToolCatalogEntry(name="wait_for_idle", schema_hint="wait_for_idle({ timeoutMs })", risk_level="low", description="Wait for idle"),
    ToolCatalogEntry(name="snapshot", schema_hint="snapshot()", risk_level="low", description="Capture screenshot"),
)

EXTENDED_TOOL_CATALOG: tuple[ToolCatalogEntry, ...] = (
    ToolCatalogEntry(name="shell", schema_hint="shell({ cmd, timeoutMs? })", risk_level="high", description="Run OS shell command"),
    ToolCatalogEntry(name="read_file", schema_hint="read_file({ path, encoding? })", risk_level="medium", description="Read local file"),
    ToolCatalogEntry(
        name="write_file",
        schema_hint="write_file({ path, content, encoding? })",
        risk_level="high",
        description="Write local file",
    ),
    ToolCatalogEntry(
        name="fetch",
        schema_hint="fetch({ url, method?, headers?, body? })",
        risk_level="medium",
        description="HTTP request and return status/body snippet",
    ),
)

# Touch profiles only get on-page tools.
TOUCH_PROFILES = frozenset({"mobile"})

TEXT_ENTRY_TOOLS = frozenset({"type"})


def build_tool_catalog(profile_name: str | None) -> list[ToolCatalogEntry]:
    if profile_name in TOUCH_PROFILES:
        return list(BASE_TOOL_CATALOG)
    return [*BASE_TOOL_CATALOG, *EXTENDED_TOOL_CATALOG]


def tool_names(catalog: list[ToolCatalogEntry]) -> list[str]:
    return [entry.name for entry in catalog]
