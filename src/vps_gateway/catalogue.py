# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.types import TextContent
from pydantic import BaseModel, ValidationError

from vps_gateway.config import GatewayConfig
from vps_gateway.errors import GatewayError
from vps_gateway.models import Outcome
from vps_gateway.runner import ProcessRunner
from vps_gateway.sites import SiteManager
from vps_gateway.utils.audit import AuditLogger


@dataclass
class ToolContext:
    """Collaborators shared by every tool handler."""

    config: GatewayConfig
    runner: ProcessRunner
    sites: SiteManager
    audit: AuditLogger


Handler = Callable[[ToolContext, Any], Awaitable[Outcome]]


class NoArgs(BaseModel):
    """Argument model for tools that take none."""


@dataclass(frozen=True)
class ToolSpec:
    """One catalogue entry: a named operation, its argument model and handler."""

    name: str
    title: str
    description: str
    arguments: type[BaseModel]
    handler: Handler

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.arguments.model_json_schema()


class ToolResponse(BaseModel):
    """Outward response shape: text blocks plus an error flag."""

    content: list[TextContent]
    is_error: bool = False

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "ToolResponse":
        return cls(content=[TextContent(type="text", text=text)], is_error=is_error)

    @classmethod
    def from_outcome(cls, outcome: Outcome) -> "ToolResponse":
        return cls.text(outcome.render(), is_error=not outcome.ok)

    @property
    def joined_text(self) -> str:
        return "\n".join(block.text for block in self.content)


class ToolCatalogue:
    """
    Declarative table of tools, built once at startup.
    The single entry point is ``invoke``; it never raises.
    """

    def __init__(self, context: ToolContext, tools: Iterable[ToolSpec]):
        self.context = context
        self._tools: dict[str, ToolSpec] = {}
        for spec in tools:
            if spec.name in self._tools:
                raise ValueError(f"Duplicate tool name: {spec.name}")
            self._tools[spec.name] = spec

    @property
    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    async def invoke(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ToolResponse:
        """Validate arguments and run the named tool.

        Args:
            tool_name: Catalogue name of the tool.
            arguments: Raw arguments as received from the client.

        Returns:
            ToolResponse: The rendered result; ``is_error`` is set for unknown
            tools, invalid arguments and failed operations.
        """
        spec = self._tools.get(tool_name)
        if spec is None:
            return ToolResponse.text(f"Unknown tool: {tool_name}", is_error=True)

        try:
            args = spec.arguments.model_validate(arguments or {})
        except ValidationError as e:
            return ToolResponse.text(f"Invalid arguments for {tool_name}:\n{e}", is_error=True)

        logger.debug(f"Invoking tool {tool_name}")
        try:
            outcome = await spec.handler(self.context, args)
        except GatewayError as e:
            outcome = Outcome.from_error(e)
        except Exception as e:
            logger.exception(f"Tool {tool_name} crashed")
            return ToolResponse.text(f"Error executing {tool_name}: {e!s}", is_error=True)

        if not outcome.ok:
            logger.warning(f"Tool {tool_name} failed: {outcome.error}")
        return ToolResponse.from_outcome(outcome)
