# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Loguru sinks: human-readable stderr and a rotating JSON file under logs/."""

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path("logs")

logger.remove()

# stdout is reserved for the stdio transport.
logger.add(
    sys.stderr,
    level="INFO",
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - {message}",
)

LOG_DIR.mkdir(parents=True, exist_ok=True)
logger.add(
    LOG_DIR / "app.log",
    level="DEBUG",
    rotation="10 MB",
    retention="14 days",
    serialize=True,
    enqueue=True,
)

__all__ = ["logger"]
