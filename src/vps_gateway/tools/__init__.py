"""
Tool catalogue entries, grouped by area.
"""

from vps_gateway.catalogue import ToolSpec

from .docker import DOCKER_TOOLS
from .files import FILE_TOOLS
from .nginx import NGINX_TOOLS
from .services import SERVICE_TOOLS
from .shell import SHELL_TOOLS


def default_tools() -> list[ToolSpec]:
    return [*SHELL_TOOLS, *FILE_TOOLS, *DOCKER_TOOLS, *NGINX_TOOLS, *SERVICE_TOOLS]


__all__ = ["default_tools", "DOCKER_TOOLS", "FILE_TOOLS", "NGINX_TOOLS", "SERVICE_TOOLS", "SHELL_TOOLS"]
