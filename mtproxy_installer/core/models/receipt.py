"""
Receipt model — the result contract for external commands.

Collaborators (container runtime, init system) return Receipts.
They NEVER raise for a failed command: the failure is captured here and
the caller decides whether it is fatal or best-effort.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of one collaborator command."""

    tool: str                       # "docker", "systemctl", "filesystem"
    operation: str                  # e.g. "rm", "daemon-reload", "compose up"
    target: str = ""                # container, image id, unit name, path
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the command failed."""
        return self.status == "failed"

    def describe(self) -> str:
        """One-line human description, used in logs and error messages."""
        label = f"{self.tool} {self.operation}"
        if self.target:
            label = f"{label} {self.target}"
        if self.ok:
            return label
        return f"{label}: {self.error or 'failed'}"

    @classmethod
    def success(
        cls,
        tool: str,
        operation: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(tool=tool, operation=operation, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        tool: str,
        operation: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(tool=tool, operation=operation, status="failed", error=error, **kwargs)
