# src/vps_gateway/models/__init__.py

"""
Data models for the gateway execution layer.
"""

from .execution import ExecutionResult
from .outcome import DeleteResult, Notice, Outcome, SiteListing, SiteState, WriteResult

__all__ = [
    "DeleteResult",
    "ExecutionResult",
    "Notice",
    "Outcome",
    "SiteListing",
    "SiteState",
    "WriteResult",
]
