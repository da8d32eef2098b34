# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""
vps-gateway
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import GatewayConfig
from .errors import AccessDenied, ErrorKind, GatewayError, IOFailure
from .models import ExecutionResult, Outcome
from .paths import GuardedPath, guard
from .runner import ProcessRunner, format_result
from .sites import SiteManager

__all__ = [
    "AccessDenied",
    "ErrorKind",
    "ExecutionResult",
    "GatewayConfig",
    "GatewayError",
    "GuardedPath",
    "IOFailure",
    "Outcome",
    "ProcessRunner",
    "SiteManager",
    "format_result",
    "guard",
]
