from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vps_gateway.catalogue import ToolCatalogue, ToolContext
from vps_gateway.config import GatewayConfig
from vps_gateway.runner import ProcessRunner
from vps_gateway.sites import SiteManager
from vps_gateway.tools import default_tools
from vps_gateway.utils.audit import AuditLogger

from helpers import NGINX_RELOAD, NGINX_TEST, ok


@pytest.fixture
def mock_runner() -> AsyncMock:
    runner = AsyncMock(spec=ProcessRunner)
    runner.run.return_value = ok()
    return runner


@pytest.fixture
def site_dirs(tmp_path: Path) -> tuple[Path, Path]:
    available = tmp_path / "sites-available"
    enabled = tmp_path / "sites-enabled"
    available.mkdir()
    enabled.mkdir()
    return available, enabled


@pytest.fixture
def sites(mock_runner: AsyncMock, site_dirs: tuple[Path, Path]) -> SiteManager:
    available, enabled = site_dirs
    return SiteManager(mock_runner, available, enabled, test_command=NGINX_TEST, reload_command=NGINX_RELOAD)


@pytest.fixture
def gateway_config(tmp_path: Path, site_dirs: tuple[Path, Path]) -> GatewayConfig:
    available, enabled = site_dirs
    return GatewayConfig(
        default_cwd=str(tmp_path),
        nginx_available_dir=available,
        nginx_enabled_dir=enabled,
        auth_token=None,
        enable_audit_logging=False,
    )


@pytest.fixture
def catalogue(gateway_config: GatewayConfig, mock_runner: AsyncMock, sites: SiteManager) -> ToolCatalogue:
    context = ToolContext(
        config=gateway_config,
        runner=mock_runner,
        sites=sites,
        audit=AuditLogger(enabled=False),
    )
    return ToolCatalogue(context, default_tools())
