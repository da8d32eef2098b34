# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import os
import shutil
import stat
from pathlib import Path

from loguru import logger

from vps_gateway.errors import ErrorKind, IOFailure
from vps_gateway.models import DeleteResult, Notice, WriteResult
from vps_gateway.paths import GuardedPath

BACKUP_SUFFIX = ".bak"


def backup_path(path: Path) -> Path:
    """Location of the snapshot kept next to ``path``."""
    return path.with_name(path.name + BACKUP_SUFFIX)


def snapshot(path: Path, warnings: list[Notice]) -> Path | None:
    """Copy a regular file to its backup location before it is changed.

    A missing file is not an error and leaves nothing behind. Failing to copy
    an existing file is recorded in ``warnings`` and the caller carries on.
    """
    if path.is_symlink() or not path.is_file():
        return None
    target = backup_path(path)
    try:
        shutil.copy2(path, target)
    except OSError as e:
        logger.warning(f"Backup of {path} failed: {e}")
        warnings.append(Notice(kind=ErrorKind.IO_FAILURE, message=f"Backup of {path} to {target} failed: {e}"))
        return None
    logger.debug(f"Backed up {path} to {target}")
    return target


def write_with_backup(path: GuardedPath, content: str | bytes, create_parents: bool = False) -> WriteResult:
    """Overwrite a file, keeping its previous content in ``<path>.bak``.

    Args:
        path: Guarded destination.
        content: Text (encoded as UTF-8) or raw bytes.
        create_parents: Create missing parent directories first.

    Returns:
        WriteResult: Bytes written, the backup location if one was taken and
        any non-fatal warnings.

    Raises:
        IOFailure: If the parent directories or the file cannot be written.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    target = path.path
    warnings: list[Notice] = []

    backup = snapshot(target, warnings)

    try:
        if create_parents:
            target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except (OSError, ValueError) as e:
        logger.error(f"Write to {target} failed: {e}")
        raise IOFailure.from_os_error("write", target, e) from e

    logger.info(f"Wrote {len(data)} bytes to {target}")
    return WriteResult(bytes_written=len(data), backup=backup, warnings=warnings)


def delete_with_backup(path: GuardedPath, recursive: bool = False) -> DeleteResult:
    """Delete a file or directory, snapshotting regular files first.

    Symlinks are removed without following them. Directories require
    ``recursive=True`` unless empty; their contents are not backed up and the
    result always carries a warning saying so.

    Raises:
        IOFailure: If the path does not exist or cannot be removed.
    """
    target = path.path
    warnings: list[Notice] = []

    try:
        mode = target.lstat().st_mode
    except (OSError, ValueError) as e:
        raise IOFailure.from_os_error("delete", target, e) from e

    backup: Path | None = None
    try:
        if stat.S_ISDIR(mode):
            if recursive:
                shutil.rmtree(target)
                warnings.append(
                    Notice(
                        kind=ErrorKind.IO_FAILURE,
                        message=f"Directory {target} was deleted recursively; its contents were not backed up",
                    )
                )
            else:
                os.rmdir(target)
        else:
            backup = snapshot(target, warnings)
            target.unlink()
    except OSError as e:
        logger.error(f"Delete of {target} failed: {e}")
        raise IOFailure.from_os_error("delete", target, e) from e

    logger.info(f"Deleted {target}")
    return DeleteResult(backup=backup, warnings=warnings)


def read_text(path: GuardedPath, max_bytes: int | None = None) -> tuple[str, bool]:
    """Read a file as UTF-8 text.

    Returns:
        tuple[str, bool]: The content and whether it was cut at ``max_bytes``.

    Raises:
        IOFailure: If the file cannot be read.
    """
    try:
        with open(path.path, "rb") as f:
            data = f.read(max_bytes + 1) if max_bytes is not None else f.read()
    except (OSError, ValueError) as e:
        raise IOFailure.from_os_error("read", path.path, e) from e

    truncated = max_bytes is not None and len(data) > max_bytes
    if truncated:
        data = data[:max_bytes]
    return data.decode("utf-8", errors="replace"), truncated


def list_directory(path: GuardedPath, show_hidden: bool = False) -> list[dict[str, str | int]]:
    """List the entries of a directory with their type and size.

    Raises:
        IOFailure: If the directory cannot be listed.
    """
    entries: list[dict[str, str | int]] = []
    try:
        with os.scandir(path.path) as it:
            for entry in it:
                if not show_hidden and entry.name.startswith("."):
                    continue
                try:
                    info = entry.stat(follow_symlinks=False)
                except OSError:
                    continue
                if entry.is_symlink():
                    kind = "symlink"
                elif entry.is_dir(follow_symlinks=False):
                    kind = "directory"
                else:
                    kind = "file"
                entries.append({"name": entry.name, "type": kind, "size": info.st_size})
    except (OSError, ValueError) as e:
        raise IOFailure.from_os_error("list", path.path, e) from e

    return sorted(entries, key=lambda e: str(e["name"]))
