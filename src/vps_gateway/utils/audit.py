import hashlib

from loguru import logger


class AuditLogger:
    """Audit trail for host-changing operations.

    Writes AUDIT records through the application logger; commands are
    identified by their SHA-256 hash so the trail can be correlated without
    repeating secrets that may appear on a command line.
    """

    def __init__(self, enabled: bool = True):
        """Initializes the AuditLogger.

        Args:
            enabled: Whether to emit audit records.
        """
        self.enabled = enabled
        if self.enabled:
            logger.info("Audit logging enabled")

    def log_command(self, tool: str, command: str, cwd: str | None = None) -> str:
        """Record a shell command about to be run.

        Args:
            tool: Name of the tool that issued the command.
            command: The command line.
            cwd: Working directory, if any.

        Returns:
            str: The SHA-256 hash of the command.
        """
        command_hash = hashlib.sha256(command.encode("utf-8")).hexdigest()
        if self.enabled:
            logger.info(f"AUDIT: {tool} running command. Hash: {command_hash}, Length: {len(command)}, Cwd: {cwd}")
        return command_hash

    def log_mutation(self, tool: str, action: str, target: str) -> None:
        """Record a filesystem or configuration change."""
        if self.enabled:
            logger.info(f"AUDIT: {tool} {action} {target}")
