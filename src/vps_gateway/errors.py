# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Error taxonomy shared by the execution layer and the tool catalogue."""

from enum import Enum


class ErrorKind(str, Enum):
    """The kinds of failure a gateway operation can report."""

    EXECUTION_FAILURE = "execution_failure"
    ACCESS_DENIED = "access_denied"
    IO_FAILURE = "io_failure"
    VALIDATION_FAILURE = "validation_failure"
    RELOAD_FAILURE = "reload_failure"


class GatewayError(Exception):
    """Base class for failures raised inside the core.

    These never cross the catalogue boundary: the catalogue converts them
    into an ``Outcome`` carrying the same kind.
    """

    kind: ErrorKind = ErrorKind.EXECUTION_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AccessDenied(GatewayError):
    """Raised when a path canonicalizes under a denylisted location."""

    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, path: str, reason: str = "path is on the denylist"):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class IOFailure(GatewayError):
    """Raised when a filesystem operation fails after the guard passed."""

    kind = ErrorKind.IO_FAILURE

    @classmethod
    def from_os_error(cls, action: str, path: object, exc: BaseException) -> "IOFailure":
        detail = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
        return cls(f"Failed to {action} {path}: {detail}")
