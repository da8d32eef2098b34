# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Result shapes returned by gateway operations."""

from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from vps_gateway.errors import ErrorKind, GatewayError

_LABELS = {
    ErrorKind.ACCESS_DENIED: "Access denied",
    ErrorKind.IO_FAILURE: "I/O error",
    ErrorKind.VALIDATION_FAILURE: "Configuration test failed",
    ErrorKind.RELOAD_FAILURE: "Reload failed",
}


class Notice(BaseModel):
    """A non-fatal problem encountered while an operation still went ahead."""

    kind: ErrorKind
    message: str


class Outcome(BaseModel):
    """Outcome of a gateway operation.

    A successful outcome with warnings is a partial success: the main effect
    happened, but a best-effort step (backup, reload, post-step) did not.
    """

    ok: bool
    message: str = ""
    error: ErrorKind | None = None
    warnings: list[Notice] = Field(default_factory=list)

    @classmethod
    def success(cls, message: str, warnings: Iterable[Notice] = ()) -> "Outcome":
        return cls(ok=True, message=message, warnings=list(warnings))

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, warnings: Iterable[Notice] = ()) -> "Outcome":
        return cls(ok=False, error=kind, message=message, warnings=list(warnings))

    @classmethod
    def from_error(cls, exc: GatewayError, warnings: Iterable[Notice] = ()) -> "Outcome":
        return cls.failure(exc.kind, exc.message, warnings)

    @property
    def partial(self) -> bool:
        return self.ok and bool(self.warnings)

    def render(self) -> str:
        """Flatten the outcome to the text shown to the operator."""
        label = _LABELS.get(self.error) if self.error else None
        text = f"{label}: {self.message}" if label else self.message
        if self.warnings:
            lines = "\n".join(f"- [{w.kind.value}] {w.message}" for w in self.warnings)
            text = f"{text}\n\nWarnings:\n{lines}" if text else f"Warnings:\n{lines}"
        return text or "(no output)"


class WriteResult(BaseModel):
    bytes_written: int
    backup: Path | None = None
    warnings: list[Notice] = Field(default_factory=list)


class DeleteResult(BaseModel):
    backup: Path | None = None
    warnings: list[Notice] = Field(default_factory=list)


class SiteState(str, Enum):
    """Lifecycle of a reverse-proxy site definition."""

    ABSENT = "absent"
    AVAILABLE = "available-only"
    ACTIVE = "active"


class SiteListing(BaseModel):
    available: list[str]
    enabled: list[str]
