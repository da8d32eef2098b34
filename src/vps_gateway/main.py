# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import anyio
import uvicorn

from vps_gateway.config import GatewayConfig
from vps_gateway.factory import GatewayFactory
from vps_gateway.server import build_http_app, build_mcp_server, serve_stdio
from vps_gateway.utils.logger import logger


def main() -> None:
    """Entry point for the gateway."""
    config = GatewayConfig()
    catalogue = GatewayFactory.get_catalogue(config)
    server = build_mcp_server(catalogue)
    logger.info(f"Registered {len(catalogue.names())} tools")

    if config.transport == "stdio":
        logger.info("Serving MCP over stdio")
        anyio.run(serve_stdio, server)
        return

    if not config.auth_token:
        logger.warning("No auth token configured (MCP_AUTH_TOKEN) - the HTTP endpoint is unauthenticated")
    logger.info(f"vps-gateway listening on http://{config.host}:{config.port}/mcp")
    logger.info(f"Health: http://{config.host}:{config.port}/health")
    uvicorn.run(build_http_app(config, server), host=config.host, port=config.port, log_level="info")


if __name__ == "__main__":  # pragma: no cover
    main()
