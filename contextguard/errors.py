"""
Error taxonomy.

ConfigError is fatal: a rule or workflow catalog is missing or malformed.
ScriptExecutionError is step-level: it is recorded as a step failure and only
escalates to a rollback when the step is required.
"""

from __future__ import annotations


class ContextGuardError(Exception):
    """Base exception for all ContextGuard errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(ContextGuardError):
    """A rule catalog or workflow document could not be loaded or is invalid."""


class CycleError(ConfigError):
    """Declared dependencies form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(
            "Dependency cycle detected: " + " → ".join(cycle),
            details={"cycle": ",".join(cycle)},
        )
        self.cycle = cycle


class ScriptExecutionError(ContextGuardError):
    """A script step could not be spawned or exited non-zero."""

    def __init__(self, script: str, message: str, exit_code: int | None = None) -> None:
        details = {"script": script}
        if exit_code is not None:
            details["exit_code"] = str(exit_code)
        super().__init__(message, details=details)
        self.script = script
        self.exit_code = exit_code
