# errors.py
# Failure taxonomy. PlanError and PolicyError are terminal diagnostics that
# the session turns into outcomes; ExecutionError aborts a run mid-plan.

from typing import Any


class PlanError(Exception):
    """Raised when a plan cannot be produced or fails schema validation."""

    def __init__(self, code: str, details: Any = None, raw: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.details = details
        self.raw = raw

    def as_detail(self, snippet: int = 400) -> dict[str, Any]:
        detail: dict[str, Any] = {"error": self.code}
        if self.details is not None:
            detail["details"] = self.details
        if self.raw:
            detail["raw"] = self.raw[:snippet]
        return detail


class PolicyError(Exception):
    """Raised when a plan violates the active guardrail profile."""

    def __init__(self, code: str, **details: Any) -> None:
        super().__init__(code)
        self.code = code
        self.details = details

    def as_detail(self) -> dict[str, Any]:
        return {"error": self.code, "details": dict(self.details)}


class ExecutionError(Exception):
    """Raised when a step fails during dispatch. Always aborts the run."""

    code = "execution_failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class MissingArgumentError(ExecutionError):
    def __init__(self, tool: str, arg: str) -> None:
        self.tool = tool
        self.arg = arg
        self.code = f"{tool}_missing_{arg}"
        super().__init__(self.code)


class UnsupportedToolError(ExecutionError):
    code = "unsupported_tool"

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"unsupported_tool_{tool}")


class SelectorNotFoundError(ExecutionError):
    code = "selector_not_found"

    def __init__(self, key: str = "") -> None:
        self.key = key
        super().__init__(self.code)


class OriginChangeDeniedError(ExecutionError):
    code = "origin_change_denied"

    def __init__(self, from_origin: str, to_origin: str) -> None:
        self.from_origin = from_origin
        self.to_origin = to_origin
        super().__init__(self.code)


class ShellCommandError(ExecutionError):
    code = "shell_failed"

    def __init__(self, reason: str) -> None:
        super().__init__(f"shell_failed:{reason}")


class Killed(Exception):
    """Raised at a checkpoint once the kill signal has been triggered."""


class ConfigurationError(Exception):
    """Raised for wiring mistakes that must never degrade into a silent skip."""
