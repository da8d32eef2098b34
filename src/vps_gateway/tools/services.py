# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from shlex import quote
from typing import Literal

from pydantic import BaseModel, Field

from vps_gateway.catalogue import ToolContext, ToolSpec
from vps_gateway.models import Outcome
from vps_gateway.runner import execution_outcome

UNIT_PATTERN = r"^[A-Za-z0-9@._:-]+$"


class ServiceArgs(BaseModel):
    name: str = Field(..., pattern=UNIT_PATTERN, description="systemd unit name, e.g. nginx or docker.service")


class ServiceActionArgs(ServiceArgs):
    action: Literal["start", "stop", "restart", "reload", "enable", "disable"]


async def service_status(ctx: ToolContext, args: ServiceArgs) -> Outcome:
    return execution_outcome(await ctx.runner.run(f"systemctl status {quote(args.name)} --no-pager --lines=20"))


async def service_action(ctx: ToolContext, args: ServiceActionArgs) -> Outcome:
    command = f"systemctl {args.action} {quote(args.name)}"
    ctx.audit.log_command("vps_service_action", command)
    result = await ctx.runner.run(command)
    if result.succeeded and not result.stdout and not result.stderr:
        return Outcome.success(f"{args.action} {args.name}: done.")
    return execution_outcome(result)


SERVICE_TOOLS = [
    ToolSpec(
        name="vps_service_status",
        title="Service Status",
        description="Show the systemd status of a service.",
        arguments=ServiceArgs,
        handler=service_status,
    ),
    ToolSpec(
        name="vps_service_action",
        title="Service Action",
        description="Start, stop, restart, reload, enable or disable a systemd service.",
        arguments=ServiceActionArgs,
        handler=service_action,
    ),
]
