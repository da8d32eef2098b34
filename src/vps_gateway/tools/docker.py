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

from vps_gateway.catalogue import NoArgs, ToolContext, ToolSpec
from vps_gateway.models import Outcome
from vps_gateway.runner import execution_outcome

CONTAINER_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class ListContainersArgs(BaseModel):
    all: bool = Field(default=False, description="Include stopped containers")


class LogsArgs(BaseModel):
    container: str = Field(..., pattern=CONTAINER_PATTERN, description="Container name or ID")
    tail: int = Field(default=100, ge=1, le=5000, description="Number of lines from the end of the logs")
    since: str | None = Field(default=None, description="Only logs since this time (e.g. 10m, 2024-01-01T00:00:00)")


class ContainerActionArgs(BaseModel):
    container: str = Field(..., pattern=CONTAINER_PATTERN, description="Container name or ID")
    action: Literal["start", "stop", "restart", "remove"]
    force: bool = Field(default=False, description="Force removal of a running container")


class RunContainerArgs(BaseModel):
    image: str = Field(..., min_length=1, description="Image to run, e.g. nginx:latest")
    name: str | None = Field(default=None, pattern=CONTAINER_PATTERN, description="Container name")
    ports: list[str] = Field(default_factory=list, description="Port mappings, e.g. 8080:80")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variables")
    volumes: list[str] = Field(default_factory=list, description="Volume mappings, e.g. /srv/data:/data")
    restart: Literal["no", "always", "unless-stopped", "on-failure"] = "unless-stopped"
    command: str | None = Field(default=None, description="Command to run in the container (shell syntax)")


_TABLE_FORMAT = quote("table {{.ID}}\t{{.Names}}\t{{.Image}}\t{{.Status}}\t{{.Ports}}")


async def list_containers(ctx: ToolContext, args: ListContainersArgs) -> Outcome:
    flag = " -a" if args.all else ""
    return execution_outcome(await ctx.runner.run(f"docker ps{flag} --format {_TABLE_FORMAT}"))


async def list_images(ctx: ToolContext, args: NoArgs) -> Outcome:
    fmt = quote("table {{.Repository}}\t{{.Tag}}\t{{.ID}}\t{{.Size}}")
    return execution_outcome(await ctx.runner.run(f"docker images --format {fmt}"))


async def container_logs(ctx: ToolContext, args: LogsArgs) -> Outcome:
    command = f"docker logs --tail {args.tail}"
    if args.since:
        command += f" --since {quote(args.since)}"
    command += f" {quote(args.container)}"
    return execution_outcome(await ctx.runner.run(command))


async def container_action(ctx: ToolContext, args: ContainerActionArgs) -> Outcome:
    if args.action == "remove":
        command = f"docker rm{' -f' if args.force else ''} {quote(args.container)}"
    else:
        command = f"docker {args.action} {quote(args.container)}"
    ctx.audit.log_command("vps_docker_container_action", command)
    return execution_outcome(await ctx.runner.run(command))


def build_run_command(args: RunContainerArgs) -> str:
    parts = ["docker", "run", "-d", "--restart", quote(args.restart)]
    if args.name:
        parts += ["--name", quote(args.name)]
    for port in args.ports:
        parts += ["-p", quote(port)]
    for key, value in args.env.items():
        parts += ["-e", quote(f"{key}={value}")]
    for volume in args.volumes:
        parts += ["-v", quote(volume)]
    parts.append(quote(args.image))
    if args.command:
        # Passed through unquoted so the container command keeps its own arguments.
        parts.append(args.command)
    return " ".join(parts)


async def run_container(ctx: ToolContext, args: RunContainerArgs) -> Outcome:
    command = build_run_command(args)
    ctx.audit.log_command("vps_docker_run", command)
    return execution_outcome(await ctx.runner.run(command))


DOCKER_TOOLS = [
    ToolSpec(
        name="vps_docker_list_containers",
        title="List Docker Containers",
        description="List Docker containers (running only unless 'all' is set).",
        arguments=ListContainersArgs,
        handler=list_containers,
    ),
    ToolSpec(
        name="vps_docker_list_images",
        title="List Docker Images",
        description="List Docker images present on the VPS.",
        arguments=NoArgs,
        handler=list_images,
    ),
    ToolSpec(
        name="vps_docker_logs",
        title="Container Logs",
        description="Fetch the most recent log lines of a container.",
        arguments=LogsArgs,
        handler=container_logs,
    ),
    ToolSpec(
        name="vps_docker_container_action",
        title="Container Action",
        description="Start, stop, restart or remove a container.",
        arguments=ContainerActionArgs,
        handler=container_action,
    ),
    ToolSpec(
        name="vps_docker_run",
        title="Run Container",
        description="Start a new detached container from an image.",
        arguments=RunContainerArgs,
        handler=run_container,
    ),
]
