# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from pydantic import BaseModel, ConfigDict, model_validator


class ExecutionResult(BaseModel):
    """Represents the result of one external command invocation.

    Attributes:
        stdout: Standard output, stripped of surrounding whitespace.
        stderr: Standard error, or the runner's own description of the failure
            when the process produced none.
        succeeded: True if the process exited with status 0 and was not killed.
        exit_code: The exit status, or None when the process never ran to
            completion (launch failure, timeout, output cap).
        timed_out: The process was killed after exceeding the timeout.
        truncated: The process was killed after exceeding the output cap.
        execution_duration: Wall-clock duration of the call in seconds.
    """

    model_config = ConfigDict(frozen=True)

    stdout: str
    stderr: str
    succeeded: bool
    exit_code: int | None = None
    timed_out: bool = False
    truncated: bool = False
    execution_duration: float = 0.0

    @model_validator(mode="after")
    def _check_success_code(self) -> "ExecutionResult":
        if self.succeeded and self.exit_code not in (0, None):
            raise ValueError(f"A succeeded result cannot carry exit code {self.exit_code}")
        if self.succeeded and (self.timed_out or self.truncated):
            raise ValueError("A killed process cannot be reported as succeeded")
        return self
