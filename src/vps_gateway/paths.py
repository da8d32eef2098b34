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
Path guard applied before any filesystem access.

The check is advisory defense in depth, not a sandbox. Paths are normalized
lexically and symlinks are not followed, so a link created elsewhere that
points at a denylisted file is not caught, and shell commands run through
the process runner bypass the guard entirely.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from vps_gateway.errors import AccessDenied


@dataclass(frozen=True)
class DenyRule:
    """A denylisted path prefix.

    With ``boundary`` set, the prefix only matches the exact path or the path
    followed by a non-alphanumeric character (``/etc/shadow-``,
    ``/etc/shadow.bak``) so that unrelated names sharing the prefix
    (``/etc/shadowy_file``) stay reachable.
    """

    prefix: str
    boundary: bool = True

    def matches(self, path: str) -> bool:
        if not path.startswith(self.prefix):
            return False
        if not self.boundary:
            return True
        rest = path[len(self.prefix) :]
        return not rest or not rest[0].isalnum()


DENYLIST: tuple[DenyRule, ...] = (
    DenyRule("/etc/shadow"),
    DenyRule("/etc/gshadow"),
    DenyRule("/root/.ssh/id_", boundary=False),
)


@dataclass(frozen=True)
class GuardedPath:
    """An absolute, normalized path that passed the denylist check."""

    path: Path
    raw: str

    def __str__(self) -> str:
        return str(self.path)

    def __fspath__(self) -> str:
        return str(self.path)


def canonicalize(raw_path: str | os.PathLike[str], base: str | os.PathLike[str] | None = None) -> str:
    """Resolve ``raw_path`` to an absolute path with ``.`` and ``..`` removed."""
    expanded = os.path.expanduser(os.fspath(raw_path))
    joined = os.path.join(os.fspath(base) if base is not None else os.getcwd(), expanded)
    normalized = os.path.normpath(joined)
    # POSIX keeps a leading "//" as implementation-defined; collapse it.
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def guard(raw_path: str | os.PathLike[str], base: str | os.PathLike[str] | None = None) -> GuardedPath:
    """Canonicalize a path and reject it if it falls under the denylist.

    Args:
        raw_path: The path as supplied by the caller.
        base: Directory relative paths are resolved against (default: cwd).

    Returns:
        GuardedPath: The canonical path.

    Raises:
        AccessDenied: If the canonical path matches a denylisted prefix.
    """
    canonical = canonicalize(raw_path, base)
    for rule in DENYLIST:
        if rule.matches(canonical):
            logger.warning(f"Denied access to {canonical} (requested as {raw_path!s})")
            raise AccessDenied(canonical)
    return GuardedPath(path=Path(canonical), raw=os.fspath(raw_path))
