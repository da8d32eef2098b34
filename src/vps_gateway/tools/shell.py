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
import json
from typing import Any, Literal

from pydantic import BaseModel, Field

from vps_gateway.catalogue import NoArgs, ToolContext, ToolSpec
from vps_gateway.models import Outcome
from vps_gateway.runner import execution_outcome


class RunCommandArgs(BaseModel):
    command: str = Field(..., min_length=1, description="Shell command to execute")
    cwd: str | None = Field(default=None, description="Working directory (defaults to the configured one)")


class ListProcessesArgs(BaseModel):
    sort_by: Literal["cpu", "mem"] = Field(default="cpu", description="Sort by CPU or memory usage")
    limit: int = Field(default=20, ge=1, le=50, description="Number of processes to return")


async def run_command(ctx: ToolContext, args: RunCommandArgs) -> Outcome:
    cwd = args.cwd or ctx.config.default_cwd
    ctx.audit.log_command("vps_run_command", args.command, cwd)
    result = await ctx.runner.run(args.command, cwd)
    return execution_outcome(result)


def _parse_memory(output: str) -> dict[str, int]:
    # `free -m`, second line: "Mem: total used free shared buff/cache available"
    lines = output.splitlines()
    if len(lines) < 2:
        return {}
    fields = lines[1].split()
    try:
        return {"total": int(fields[1]), "used": int(fields[2]), "free": int(fields[3])}
    except (IndexError, ValueError):
        return {}


def _parse_disk(output: str) -> dict[str, str]:
    # `df -h /`, second line: "fs size used avail use% mount"
    lines = output.splitlines()
    if len(lines) < 2:
        return {}
    fields = lines[-1].split()
    if len(fields) < 4:
        return {}
    return {"total": fields[1], "used": fields[2], "free": fields[3]}


async def get_system_info(ctx: ToolContext, args: NoArgs) -> Outcome:
    os_name, mem, disk, uptime, load = await asyncio.gather(
        ctx.runner.run(
            "lsb_release -ds 2>/dev/null || grep PRETTY_NAME /etc/os-release | cut -d= -f2 | tr -d '\"'"
        ),
        ctx.runner.run("free -m"),
        ctx.runner.run("df -h /"),
        ctx.runner.run("uptime -p"),
        ctx.runner.run("cat /proc/loadavg"),
    )
    info: dict[str, Any] = {
        "os": os_name.stdout,
        "uptime": uptime.stdout,
        "load_avg": ", ".join(load.stdout.split()[:3]),
        "memory_mb": _parse_memory(mem.stdout),
        "disk_root": _parse_disk(disk.stdout),
    }
    return Outcome.success(json.dumps(info, indent=2))


async def list_processes(ctx: ToolContext, args: ListProcessesArgs) -> Outcome:
    flag = "--sort=-%mem" if args.sort_by == "mem" else "--sort=-%cpu"
    result = await ctx.runner.run(f"ps aux {flag} | head -n {args.limit + 1}")
    return execution_outcome(result)


SHELL_TOOLS = [
    ToolSpec(
        name="vps_run_command",
        title="Run Shell Command",
        description="Execute an arbitrary shell command on the VPS and return stdout/stderr.",
        arguments=RunCommandArgs,
        handler=run_command,
    ),
    ToolSpec(
        name="vps_get_system_info",
        title="Get System Info",
        description="Return a snapshot of VPS system health: OS, RAM, disk, uptime, load.",
        arguments=NoArgs,
        handler=get_system_info,
    ),
    ToolSpec(
        name="vps_list_processes",
        title="List Running Processes",
        description="List top running processes by CPU or memory usage.",
        arguments=ListProcessesArgs,
        handler=list_processes,
    ),
]
