from vps_gateway.catalogue import ToolCatalogue, ToolContext
from vps_gateway.config import GatewayConfig
from vps_gateway.runner import ProcessRunner
from vps_gateway.sites import SiteManager
from vps_gateway.tools import default_tools
from vps_gateway.utils.audit import AuditLogger


class GatewayFactory:
    """
    Factory wiring the execution layer and the tool catalogue from configuration.
    """

    @staticmethod
    def get_runner(config: GatewayConfig) -> ProcessRunner:
        return ProcessRunner(timeout=config.command_timeout, max_output_bytes=config.max_output_bytes)

    @staticmethod
    def get_site_manager(config: GatewayConfig, runner: ProcessRunner) -> SiteManager:
        return SiteManager(
            runner=runner,
            available_dir=config.nginx_available_dir,
            enabled_dir=config.nginx_enabled_dir,
            test_command=config.nginx_test_command,
            reload_command=config.nginx_reload_command,
        )

    @staticmethod
    def get_catalogue(config: GatewayConfig) -> ToolCatalogue:
        """
        Returns the catalogue of all tools, bound to one shared runner.
        """
        runner = GatewayFactory.get_runner(config)
        context = ToolContext(
            config=config,
            runner=runner,
            sites=GatewayFactory.get_site_manager(config, runner),
            audit=AuditLogger(enabled=config.enable_audit_logging),
        )
        return ToolCatalogue(context, default_tools())
