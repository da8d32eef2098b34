# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import contextlib
import hmac
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.datastructures import Headers
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import ASGIApp, Receive, Scope, Send

from vps_gateway import __version__
from vps_gateway.catalogue import ToolCatalogue
from vps_gateway.config import GatewayConfig

SERVER_NAME = "vps-gateway"


class ToolInvocationError(Exception):
    """Carries the rendered text of a failed tool call to the MCP error result."""


def build_mcp_server(catalogue: ToolCatalogue) -> Server:
    """
    Expose the catalogue through an MCP server.
    Tool listings and calls are served straight from the catalogue table.
    """
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()  # type: ignore[misc]
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=spec.name,
                title=spec.title,
                description=spec.description,
                inputSchema=spec.input_schema,
            )
            for spec in catalogue.specs
        ]

    @server.call_tool()  # type: ignore[misc]
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        response = await catalogue.invoke(name, arguments)
        if response.is_error:
            # The server turns a raised exception into an isError result with this text.
            raise ToolInvocationError(response.joined_text)
        return response.content

    return server


class BearerAuthMiddleware:
    """
    Rejects HTTP requests whose Authorization header does not carry the
    configured bearer token. Without a token every request is let through.
    """

    def __init__(self, app: ASGIApp, token: str | None = None):
        self.app = app
        self.token = token

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.token:
            await self.app(scope, receive, send)
            return

        supplied = Headers(scope=scope).get("authorization", "")
        expected = f"Bearer {self.token}"
        if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            logger.warning(f"Rejected unauthenticated request to {scope.get('path')}")
            response = JSONResponse({"error": "Unauthorized"}, status_code=401)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


class StreamableHTTPEndpoint:
    """ASGI endpoint handing requests to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "server": SERVER_NAME, "version": __version__})


def build_http_app(config: GatewayConfig, server: Server) -> Starlette:
    """Starlette app serving MCP over Streamable HTTP at /mcp plus /health."""
    session_manager = StreamableHTTPSessionManager(
        app=server,
        event_store=None,
        json_response=True,
        stateless=True,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            yield

    return Starlette(
        routes=[
            Route("/mcp", endpoint=StreamableHTTPEndpoint(session_manager), methods=["GET", "POST", "DELETE"]),
            Route("/health", endpoint=health, methods=["GET"]),
        ],
        middleware=[Middleware(BearerAuthMiddleware, token=config.auth_token)],
        lifespan=lifespan,
    )


async def serve_stdio(server: Server) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
