# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import asyncio

from pydantic import BaseModel, Field

from vps_gateway import files
from vps_gateway.catalogue import ToolContext, ToolSpec
from vps_gateway.errors import ErrorKind
from vps_gateway.models import Notice, Outcome
from vps_gateway.paths import guard


class PathArgs(BaseModel):
    path: str = Field(..., min_length=1, description="Absolute path, or relative to the default working directory")


class WriteFileArgs(PathArgs):
    content: str = Field(..., description="Text content to write (UTF-8)")
    create_dirs: bool = Field(default=False, description="Create missing parent directories")


class DeleteFileArgs(PathArgs):
    recursive: bool = Field(default=False, description="Delete directories and their contents")


class ListDirectoryArgs(PathArgs):
    show_hidden: bool = Field(default=False, description="Include dot files")


async def read_file(ctx: ToolContext, args: PathArgs) -> Outcome:
    path = guard(args.path, base=ctx.config.default_cwd)
    text, truncated = await asyncio.to_thread(files.read_text, path, ctx.config.max_output_bytes)
    warnings = []
    if truncated:
        warnings.append(
            Notice(
                kind=ErrorKind.IO_FAILURE,
                message=f"File is larger than {ctx.config.max_output_bytes} bytes; content was truncated",
            )
        )
    return Outcome.success(text, warnings)


async def write_file(ctx: ToolContext, args: WriteFileArgs) -> Outcome:
    path = guard(args.path, base=ctx.config.default_cwd)
    ctx.audit.log_mutation("vps_write_file", "write", str(path))
    result = await asyncio.to_thread(files.write_with_backup, path, args.content, args.create_dirs)
    message = f"Wrote {result.bytes_written} bytes to {path}"
    if result.backup is not None:
        message += f" (previous version saved to {result.backup})"
    return Outcome.success(message, result.warnings)


async def delete_file(ctx: ToolContext, args: DeleteFileArgs) -> Outcome:
    path = guard(args.path, base=ctx.config.default_cwd)
    ctx.audit.log_mutation("vps_delete_file", "delete", str(path))
    result = await asyncio.to_thread(files.delete_with_backup, path, args.recursive)
    message = f"Deleted {path}"
    if result.backup is not None:
        message += f" (backup saved to {result.backup})"
    return Outcome.success(message, result.warnings)


async def list_directory(ctx: ToolContext, args: ListDirectoryArgs) -> Outcome:
    path = guard(args.path, base=ctx.config.default_cwd)
    entries = await asyncio.to_thread(files.list_directory, path, args.show_hidden)
    if not entries:
        return Outcome.success(f"{path} is empty")
    lines = [f"{e['type']:<9} {e['size']:>12} {e['name']}" for e in entries]
    return Outcome.success("\n".join(lines))


FILE_TOOLS = [
    ToolSpec(
        name="vps_read_file",
        title="Read File",
        description="Read a text file on the VPS.",
        arguments=PathArgs,
        handler=read_file,
    ),
    ToolSpec(
        name="vps_write_file",
        title="Write File",
        description="Write a text file on the VPS. An existing file is backed up to <path>.bak first.",
        arguments=WriteFileArgs,
        handler=write_file,
    ),
    ToolSpec(
        name="vps_delete_file",
        title="Delete File",
        description=(
            "Delete a file or directory on the VPS. Files are backed up to <path>.bak first; "
            "directory contents deleted recursively are NOT backed up."
        ),
        arguments=DeleteFileArgs,
        handler=delete_file,
    ),
    ToolSpec(
        name="vps_list_directory",
        title="List Directory",
        description="List the entries of a directory on the VPS with their type and size.",
        arguments=ListDirectoryArgs,
        handler=list_directory,
    ),
]
