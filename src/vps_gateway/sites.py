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
Reverse-proxy site management with validate-before-commit.

A site is a definition file in the "available" directory plus, when active,
a symlink to it in the "enabled" directory. Every change to the enabled set
is followed by the proxy's own configuration test; a rejected candidate is
rolled back before the live service is asked to reload, so the service only
ever reloads known-good configuration.
"""

import asyncio
import os
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from vps_gateway.errors import AccessDenied, ErrorKind, GatewayError, IOFailure
from vps_gateway.files import BACKUP_SUFFIX, backup_path, delete_with_backup, write_with_backup
from vps_gateway.models import ExecutionResult, Notice, Outcome, SiteListing, SiteState
from vps_gateway.paths import GuardedPath, guard
from vps_gateway.runner import ProcessRunner, format_result

SITE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class PostStep:
    """A command run after a site was published and reloaded."""

    name: str
    command: str


class SiteManager:
    """
    Manages site definitions for a reverse proxy laid out as an
    available/enabled directory pair (the Debian nginx convention).
    """

    def __init__(
        self,
        runner: ProcessRunner,
        available_dir: Path,
        enabled_dir: Path,
        test_command: str = "nginx -t",
        reload_command: str = "systemctl reload nginx",
    ):
        self.runner = runner
        self.available_dir = Path(available_dir)
        self.enabled_dir = Path(enabled_dir)
        self.test_command = test_command
        self.reload_command = reload_command

    def _check_name(self, name: str) -> None:
        if not SITE_NAME_PATTERN.match(name) or ".." in name or name.endswith(BACKUP_SUFFIX):
            raise AccessDenied(name, "not a valid site name")

    def available_path(self, name: str) -> GuardedPath:
        self._check_name(name)
        return guard(self.available_dir / name)

    def enabled_path(self, name: str) -> GuardedPath:
        self._check_name(name)
        return guard(self.enabled_dir / name)

    def state(self, name: str) -> SiteState:
        """Current lifecycle state of a site."""
        available = self.available_path(name).path
        enabled = self.enabled_path(name).path
        if not available.is_file():
            return SiteState.ABSENT
        if _present(enabled):
            return SiteState.ACTIVE
        return SiteState.AVAILABLE

    def list_sites(self) -> SiteListing:
        """List available definitions and enabled entries, backups excluded."""
        return SiteListing(
            available=self._names(self.available_dir),
            enabled=self._names(self.enabled_dir),
        )

    @staticmethod
    def _names(directory: Path) -> list[str]:
        if not directory.is_dir():
            return []
        return sorted(
            p.name for p in directory.iterdir() if not p.name.endswith(BACKUP_SUFFIX) and not p.name.startswith(".")
        )

    def read_site(self, name: str) -> str:
        available = self.available_path(name).path
        try:
            return available.read_text(encoding="utf-8")
        except OSError as e:
            raise IOFailure.from_os_error("read site", name, e) from e

    async def validate(self) -> ExecutionResult:
        """Run the proxy's configuration test over the whole configuration."""
        return await self.runner.run(self.test_command)

    async def reload(self) -> ExecutionResult:
        return await self.runner.run(self.reload_command)

    async def publish(
        self,
        name: str,
        definition_text: str,
        activate: bool = True,
        post_steps: Sequence[PostStep] = (),
    ) -> Outcome:
        """Write a site definition and, if requested, activate it safely.

        The definition is written (previous one kept as ``.bak``). With
        activation the site is linked into the enabled set and the
        configuration test is run; if it fails, the change is rolled back and
        the test's diagnostic returned unchanged. If it passes the service is
        reloaded and the post-steps run. Reload and post-step failures are
        reported as warnings and undo nothing.

        Without activation a site that is not enabled is only written. A site
        that is already enabled serves the new definition as soon as anything
        reloads, so it is still tested (and rolled back on rejection), but not
        reloaded.

        Returns:
            Outcome: ``validation_failure`` on a rejected candidate, otherwise
            a (possibly partial) success.
        """
        warnings: list[Notice] = []
        try:
            available = self.available_path(name)
            enabled = self.enabled_path(name)
            prior, previous = await asyncio.to_thread(self._capture, name)
            written = await asyncio.to_thread(write_with_backup, available, definition_text, True)
        except GatewayError as e:
            return Outcome.from_error(e)
        warnings.extend(written.warnings)

        if not activate and prior is not SiteState.ACTIVE:
            logger.info(f"Site {name} written to {available} without enabling it")
            return Outcome.success(
                f"Site {name} written to {available} ({written.bytes_written} bytes); not enabled.",
                warnings,
            )

        if activate:
            try:
                await asyncio.to_thread(self._link, available.path, enabled.path)
            except OSError as e:
                await asyncio.to_thread(self._rollback, name, prior, previous, written.backup, warnings)
                return Outcome.failure(ErrorKind.IO_FAILURE, f"Failed to enable site {name}: {e}", warnings)

        check = await self.validate()
        if not check.succeeded:
            logger.warning(f"Configuration test rejected site {name}; rolling back")
            await asyncio.to_thread(self._rollback, name, prior, previous, written.backup, warnings)
            return Outcome.failure(ErrorKind.VALIDATION_FAILURE, diagnostic(check), warnings)

        if not activate:
            return Outcome.success(
                f"Site {name} updated ({written.bytes_written} bytes) and passed the configuration test; "
                "it is enabled and takes effect on the next reload.",
                warnings,
            )

        lines = [f"Site {name} published and enabled."]
        await self._reload_into(warnings, lines)

        for step in post_steps:
            result = await self.runner.run(step.command)
            if result.succeeded:
                lines.append(f"{step.name}: done.")
            else:
                logger.warning(f"Post-step {step.name} for site {name} failed")
                warnings.append(
                    Notice(kind=ErrorKind.EXECUTION_FAILURE, message=f"{step.name} failed:\n{format_result(result)}")
                )

        return Outcome.success("\n".join(lines), warnings)

    def _capture(self, name: str) -> tuple[SiteState, bytes | None]:
        """State of the site and its current definition, taken before a write."""
        available = self.available_path(name).path
        self._require_link(self.enabled_path(name).path)
        state = self.state(name)
        if state is SiteState.ABSENT:
            return state, None
        try:
            return state, available.read_bytes()
        except OSError as e:
            raise IOFailure.from_os_error("read site", name, e) from e

    def _rollback(
        self,
        name: str,
        prior: SiteState,
        previous: bytes | None,
        backup: Path | None,
        warnings: list[Notice],
    ) -> None:
        available = self.available_path(name).path
        enabled = self.enabled_path(name).path
        try:
            if prior is SiteState.ACTIVE:
                if self._restore(available, previous, backup):
                    if not enabled.is_symlink():
                        os.symlink(available, enabled)
                    return
                # A rejected definition must not stay enabled.
                if enabled.is_symlink():
                    enabled.unlink()
                warnings.append(
                    Notice(
                        kind=ErrorKind.IO_FAILURE,
                        message=f"Previous definition of {name} could not be restored; the site was disabled",
                    )
                )
                return
            if enabled.is_symlink():
                enabled.unlink()
            if available.exists():
                available.unlink()
            if prior is SiteState.AVAILABLE:
                warnings.append(
                    Notice(
                        kind=ErrorKind.IO_FAILURE,
                        message=f"Previous definition of {name} removed; it is kept in {backup_path(available)}",
                    )
                )
        except OSError as e:
            logger.error(f"Rollback of site {name} failed: {e}")
            warnings.append(Notice(kind=ErrorKind.IO_FAILURE, message=f"Rollback of site {name} failed: {e}"))

    @staticmethod
    def _restore(available: Path, previous: bytes | None, backup: Path | None) -> bool:
        """Put the pre-write definition back, from memory first, then from ``.bak``."""
        if previous is not None:
            try:
                available.write_bytes(previous)
                return True
            except OSError as e:
                logger.error(f"Restoring {available} from memory failed: {e}")
        if backup is not None:
            try:
                shutil.copy2(backup, available)
                return True
            except OSError as e:
                logger.error(f"Restoring {available} from {backup} failed: {e}")
        return False

    async def enable(self, name: str) -> Outcome:
        """Link an existing definition into the enabled set, test, reload."""
        try:
            available = self.available_path(name)
            enabled = self.enabled_path(name)
            state = await asyncio.to_thread(self.state, name)
        except GatewayError as e:
            return Outcome.from_error(e)

        if state is SiteState.ABSENT:
            return Outcome.failure(ErrorKind.IO_FAILURE, f"Site {name} does not exist in {self.available_dir}")
        if state is SiteState.ACTIVE:
            return Outcome.success(f"Site {name} is already enabled.")

        try:
            await asyncio.to_thread(self._link, available.path, enabled.path)
        except OSError as e:
            return Outcome.failure(ErrorKind.IO_FAILURE, f"Failed to enable site {name}: {e}")

        warnings: list[Notice] = []
        check = await self.validate()
        if not check.succeeded:
            await asyncio.to_thread(self._unlink, enabled.path, warnings)
            return Outcome.failure(ErrorKind.VALIDATION_FAILURE, diagnostic(check), warnings)

        lines = [f"Site {name} enabled."]
        await self._reload_into(warnings, lines)
        return Outcome.success("\n".join(lines), warnings)

    async def disable(self, name: str) -> Outcome:
        """Remove a site from the enabled set, test, reload."""
        try:
            available = self.available_path(name)
            enabled = self.enabled_path(name)
            if not await asyncio.to_thread(_present, enabled.path):
                return Outcome.success(f"Site {name} is not enabled.")
            link_target = await asyncio.to_thread(self._detach, enabled.path)
        except GatewayError as e:
            return Outcome.from_error(e)
        except OSError as e:
            return Outcome.failure(ErrorKind.IO_FAILURE, f"Failed to disable site {name}: {e}")

        warnings: list[Notice] = []
        check = await self.validate()
        if not check.succeeded:
            try:
                await asyncio.to_thread(os.symlink, link_target or available.path, enabled.path)
            except OSError as e:
                warnings.append(Notice(kind=ErrorKind.IO_FAILURE, message=f"Failed to re-enable site {name}: {e}"))
            return Outcome.failure(ErrorKind.VALIDATION_FAILURE, diagnostic(check), warnings)

        lines = [f"Site {name} disabled."]
        await self._reload_into(warnings, lines)
        return Outcome.success("\n".join(lines), warnings)

    async def delete(self, name: str) -> Outcome:
        """Remove a site entirely. The definition is kept as ``.bak``."""
        try:
            was_enabled, warnings = await asyncio.to_thread(self._remove, name)
        except GatewayError as e:
            return Outcome.from_error(e)
        except OSError as e:
            return Outcome.failure(ErrorKind.IO_FAILURE, f"Failed to delete site {name}: {e}")

        lines = [f"Site {name} deleted."]
        if was_enabled:
            await self._reload_into(warnings, lines)
        return Outcome.success("\n".join(lines), warnings)

    def _remove(self, name: str) -> tuple[bool, list[Notice]]:
        available = self.available_path(name)
        enabled = self.enabled_path(name)
        self._require_link(enabled.path)
        state = self.state(name)
        was_enabled = _present(enabled.path)
        if state is SiteState.ABSENT and not was_enabled:
            raise IOFailure(f"Site {name} does not exist")

        warnings: list[Notice] = []
        if was_enabled:
            enabled.path.unlink()
        if state is not SiteState.ABSENT:
            removed = delete_with_backup(available)
            warnings.extend(removed.warnings)
        return was_enabled, warnings

    async def _reload_into(self, warnings: list[Notice], lines: list[str]) -> None:
        result = await self.reload()
        if result.succeeded:
            lines.append("Service reloaded.")
        else:
            logger.error("Service reload failed after a validated configuration change")
            warnings.append(Notice(kind=ErrorKind.RELOAD_FAILURE, message=format_result(result)))

    @staticmethod
    def _require_link(link: Path) -> None:
        """Refuse to touch an enabled entry that is a real file rather than our symlink."""
        if link.exists() and not link.is_symlink():
            raise IOFailure(f"{link} is not a symlink; move it aside before managing this site")

    @staticmethod
    def _link(target: Path, link: Path) -> None:
        link.parent.mkdir(parents=True, exist_ok=True)
        if link.is_symlink():
            link.unlink()
        os.symlink(target, link)

    @classmethod
    def _detach(cls, link: Path) -> str:
        cls._require_link(link)
        target = os.readlink(link)
        link.unlink()
        return target

    @staticmethod
    def _unlink(link: Path, warnings: list[Notice]) -> None:
        try:
            link.unlink()
        except OSError as e:
            warnings.append(Notice(kind=ErrorKind.IO_FAILURE, message=f"Failed to remove {link}: {e}"))


def _present(path: Path) -> bool:
    return path.is_symlink() or path.exists()


def diagnostic(result: ExecutionResult) -> str:
    """The validator's own output, verbatim."""
    return result.stderr or result.stdout or format_result(result)


def render_proxy_site(domain: str, upstream_port: int, upstream_host: str = "127.0.0.1") -> str:
    """Server block proxying ``domain`` to a local upstream."""
    return f"""server {{
    listen 80;
    listen [::]:80;
    server_name {domain};

    location / {{
        proxy_pass http://{upstream_host}:{upstream_port};
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
    }}
}}
"""


def render_static_site(domain: str, root: str) -> str:
    """Server block serving static files for ``domain`` from ``root``."""
    return f"""server {{
    listen 80;
    listen [::]:80;
    server_name {domain};

    root {root};
    index index.html index.htm;

    location / {{
        try_files $uri $uri/ =404;
    }}
}}
"""
