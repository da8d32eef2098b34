# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vps_gateway.runner import DEFAULT_MAX_OUTPUT_BYTES, DEFAULT_TIMEOUT


class GatewayConfig(BaseSettings):
    """
    Configuration for the gateway, read once at startup.
    """

    # Transport
    transport: Literal["http", "stdio"] = "http"
    host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("VPS_GATEWAY_HOST", "HOST"))
    port: int = Field(default=3841, validation_alias=AliasChoices("VPS_GATEWAY_PORT", "PORT"))
    # No token means the HTTP endpoint is open.
    auth_token: str | None = Field(
        default=None, validation_alias=AliasChoices("VPS_GATEWAY_AUTH_TOKEN", "MCP_AUTH_TOKEN")
    )

    # Process runner
    command_timeout: float = DEFAULT_TIMEOUT
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    default_cwd: str = "/root"

    # Reverse proxy
    nginx_available_dir: Path = Path("/etc/nginx/sites-available")
    nginx_enabled_dir: Path = Path("/etc/nginx/sites-enabled")
    nginx_test_command: str = "nginx -t"
    nginx_reload_command: str = "systemctl reload nginx"
    certbot_command: str = "certbot --nginx --non-interactive --agree-tos --redirect"

    enable_audit_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="VPS_GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )
