# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import asyncio
import os
import signal
import time
from pathlib import Path

from loguru import logger

from vps_gateway.errors import ErrorKind
from vps_gateway.models import ExecutionResult, Outcome

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
_CHUNK_SIZE = 64 * 1024
_KILL_GRACE = 5.0


class _OutputBudget:
    """Shared byte budget for stdout and stderr of one process."""

    def __init__(self, limit: int):
        self.remaining = limit
        self.exceeded = False

    def take(self, size: int) -> int:
        allowed = min(size, self.remaining)
        self.remaining -= allowed
        if allowed < size:
            self.exceeded = True
        return allowed


class ProcessRunner:
    """
    Runs shell command lines on the host with a wall-clock timeout and an
    output cap. Every outcome, including launch errors, is returned as an
    ExecutionResult; nothing is raised to the caller.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ):
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes

    async def run(self, command_line: str, working_directory: str | Path | None = None) -> ExecutionResult:
        """Run ``command_line`` through the system shell.

        Args:
            command_line: Shell command line. Metacharacters are interpreted;
                callers are responsible for quoting.
            working_directory: Directory to run in. Must exist.

        Returns:
            ExecutionResult: The normalized result. Timeouts and output overflow
            kill the whole process group and yield ``exit_code=None``.
        """
        start_time = time.time()

        if working_directory is not None and not Path(working_directory).is_dir():
            logger.warning(f"Refusing to run command: working directory {working_directory} does not exist")
            return ExecutionResult(
                stdout="",
                stderr=f"Working directory does not exist: {working_directory}",
                succeeded=False,
                execution_duration=time.time() - start_time,
            )

        try:
            proc = await asyncio.create_subprocess_shell(
                command_line,
                cwd=working_directory,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to launch command: {e}")
            return ExecutionResult(
                stdout="",
                stderr=str(e) or "Failed to launch command",
                succeeded=False,
                execution_duration=time.time() - start_time,
            )

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        budget = _OutputBudget(self.max_output_bytes)
        timed_out = False

        try:
            await asyncio.wait_for(
                self._collect(proc, stdout_buf, stderr_buf, budget),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"Command timed out after {self.timeout}s, killing process group {proc.pid}")
            self._kill(proc)

        if proc.returncode is None:
            try:
                await asyncio.wait_for(proc.wait(), timeout=_KILL_GRACE)
            except asyncio.TimeoutError:
                logger.error(f"Process {proc.pid} did not exit after being killed")

        duration = time.time() - start_time
        stdout = stdout_buf.decode("utf-8", errors="replace").strip()
        stderr = stderr_buf.decode("utf-8", errors="replace").strip()

        if timed_out:
            return ExecutionResult(
                stdout=stdout,
                stderr=stderr or f"Command timed out after {self.timeout:g}s",
                succeeded=False,
                timed_out=True,
                execution_duration=duration,
            )

        if budget.exceeded:
            return ExecutionResult(
                stdout=stdout,
                stderr=stderr or f"Command output exceeded {self.max_output_bytes} bytes",
                succeeded=False,
                truncated=True,
                execution_duration=duration,
            )

        exit_code = proc.returncode
        if exit_code == 0:
            return ExecutionResult(
                stdout=stdout,
                stderr=stderr,
                succeeded=True,
                exit_code=0,
                execution_duration=duration,
            )

        return ExecutionResult(
            stdout=stdout,
            stderr=stderr or f"Command failed with exit code {exit_code}: {command_line}",
            succeeded=False,
            exit_code=exit_code,
            execution_duration=duration,
        )

    async def _collect(
        self,
        proc: asyncio.subprocess.Process,
        stdout_buf: bytearray,
        stderr_buf: bytearray,
        budget: _OutputBudget,
    ) -> None:
        assert proc.stdout is not None and proc.stderr is not None
        await asyncio.gather(
            self._pump(proc, proc.stdout, stdout_buf, budget),
            self._pump(proc, proc.stderr, stderr_buf, budget),
        )
        await proc.wait()

    async def _pump(
        self,
        proc: asyncio.subprocess.Process,
        stream: asyncio.StreamReader,
        sink: bytearray,
        budget: _OutputBudget,
    ) -> None:
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return
            allowed = budget.take(len(chunk))
            sink.extend(chunk[:allowed])
            if budget.exceeded:
                logger.warning(f"Output cap of {self.max_output_bytes} bytes exceeded, killing process group {proc.pid}")
                self._kill(proc)
                return

    @staticmethod
    def _kill(proc: asyncio.subprocess.Process) -> None:
        # The shell runs in its own session, so its pid is the process group id.
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        # Descendants that left the group (setsid, daemons) can keep the pipes
        # open; drop our ends so the readers see EOF and wait() can finish.
        transport = getattr(proc, "_transport", None)
        if transport is not None:
            transport.close()


def format_result(result: ExecutionResult) -> str:
    """Render a result as text: stdout, stderr, then the exit code on failure."""
    parts: list[str] = []
    if result.stdout:
        parts.append(f"stdout:\n{result.stdout}")
    if result.stderr:
        parts.append(f"stderr:\n{result.stderr}")
    if not result.succeeded:
        exit_code = result.exit_code if result.exit_code is not None else 1
        parts.append(f"exit_code: {exit_code}")
    return "\n\n".join(parts) or "(no output)"


def execution_outcome(result: ExecutionResult) -> Outcome:
    """Wrap a result as an Outcome whose message is its ``format_result`` text."""
    if result.succeeded:
        return Outcome.success(format_result(result))
    return Outcome.failure(ErrorKind.EXECUTION_FAILURE, format_result(result))
