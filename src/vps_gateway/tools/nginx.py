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
import json
from shlex import quote

from pydantic import BaseModel, Field, model_validator

from vps_gateway.catalogue import NoArgs, ToolContext, ToolSpec
from vps_gateway.errors import ErrorKind
from vps_gateway.models import Outcome
from vps_gateway.runner import execution_outcome, format_result
from vps_gateway.sites import SITE_NAME_PATTERN, PostStep, diagnostic, render_proxy_site, render_static_site


class SiteArgs(BaseModel):
    name: str = Field(..., pattern=SITE_NAME_PATTERN.pattern, description="Site name (file name in sites-available)")


class CreateSiteArgs(BaseModel):
    domain: str = Field(..., pattern=SITE_NAME_PATTERN.pattern, description="Domain; also used as the site name")
    config: str | None = Field(default=None, description="Full server block. Overrides the templates.")
    upstream_port: int | None = Field(default=None, ge=1, le=65535, description="Proxy to 127.0.0.1:<port>")
    root: str | None = Field(default=None, description="Serve static files from this directory")
    enable: bool = Field(default=True, description="Enable, test and reload after writing")
    ssl: bool = Field(default=False, description="Obtain a certificate with certbot after enabling")
    email: str | None = Field(default=None, description="Contact e-mail for the certificate")

    @model_validator(mode="after")
    def _one_source(self) -> "CreateSiteArgs":
        given = [v for v in (self.config, self.upstream_port, self.root) if v is not None]
        if len(given) != 1:
            raise ValueError("Provide exactly one of 'config', 'upstream_port' or 'root'")
        if self.ssl and not self.enable:
            raise ValueError("'ssl' requires 'enable'")
        return self

    def definition(self) -> str:
        if self.config is not None:
            return self.config
        if self.upstream_port is not None:
            return render_proxy_site(self.domain, self.upstream_port)
        assert self.root is not None
        return render_static_site(self.domain, self.root)


async def nginx_status(ctx: ToolContext, args: NoArgs) -> Outcome:
    return execution_outcome(await ctx.runner.run("systemctl is-active nginx"))


async def nginx_test(ctx: ToolContext, args: NoArgs) -> Outcome:
    result = await ctx.sites.validate()
    if result.succeeded:
        return Outcome.success(format_result(result))
    return Outcome.failure(ErrorKind.VALIDATION_FAILURE, diagnostic(result))


async def nginx_reload(ctx: ToolContext, args: NoArgs) -> Outcome:
    check = await ctx.sites.validate()
    if not check.succeeded:
        return Outcome.failure(ErrorKind.VALIDATION_FAILURE, diagnostic(check))
    ctx.audit.log_command("vps_nginx_reload", ctx.sites.reload_command)
    result = await ctx.sites.reload()
    if not result.succeeded:
        return Outcome.failure(ErrorKind.RELOAD_FAILURE, format_result(result))
    return Outcome.success("Configuration test passed; nginx reloaded.")


async def list_sites(ctx: ToolContext, args: NoArgs) -> Outcome:
    listing = await asyncio.to_thread(ctx.sites.list_sites)
    return Outcome.success(json.dumps(listing.model_dump(), indent=2))


async def read_site(ctx: ToolContext, args: SiteArgs) -> Outcome:
    return Outcome.success(await asyncio.to_thread(ctx.sites.read_site, args.name))


async def create_site(ctx: ToolContext, args: CreateSiteArgs) -> Outcome:
    post_steps = []
    if args.ssl:
        contact = f"-m {quote(args.email)}" if args.email else "--register-unsafely-without-email"
        post_steps.append(
            PostStep(name="certbot", command=f"{ctx.config.certbot_command} {contact} -d {quote(args.domain)}")
        )
    ctx.audit.log_mutation("vps_nginx_create_site", "publish", args.domain)
    return await ctx.sites.publish(args.domain, args.definition(), activate=args.enable, post_steps=post_steps)


async def enable_site(ctx: ToolContext, args: SiteArgs) -> Outcome:
    ctx.audit.log_mutation("vps_nginx_enable_site", "enable", args.name)
    return await ctx.sites.enable(args.name)


async def disable_site(ctx: ToolContext, args: SiteArgs) -> Outcome:
    ctx.audit.log_mutation("vps_nginx_disable_site", "disable", args.name)
    return await ctx.sites.disable(args.name)


async def delete_site(ctx: ToolContext, args: SiteArgs) -> Outcome:
    ctx.audit.log_mutation("vps_nginx_delete_site", "delete", args.name)
    return await ctx.sites.delete(args.name)


NGINX_TOOLS = [
    ToolSpec(
        name="vps_nginx_status",
        title="Nginx Status",
        description="Check whether nginx is active.",
        arguments=NoArgs,
        handler=nginx_status,
    ),
    ToolSpec(
        name="vps_nginx_test",
        title="Test Nginx Configuration",
        description="Run the nginx configuration test without applying anything.",
        arguments=NoArgs,
        handler=nginx_test,
    ),
    ToolSpec(
        name="vps_nginx_reload",
        title="Reload Nginx",
        description="Test the nginx configuration and reload nginx only if the test passes.",
        arguments=NoArgs,
        handler=nginx_reload,
    ),
    ToolSpec(
        name="vps_nginx_list_sites",
        title="List Nginx Sites",
        description="List available and enabled nginx sites.",
        arguments=NoArgs,
        handler=list_sites,
    ),
    ToolSpec(
        name="vps_nginx_read_site",
        title="Read Nginx Site",
        description="Show the definition of an nginx site.",
        arguments=SiteArgs,
        handler=read_site,
    ),
    ToolSpec(
        name="vps_nginx_create_site",
        title="Create Nginx Site",
        description=(
            "Create or replace an nginx site from a raw server block, a reverse-proxy port or a static root. "
            "When enabled, the configuration is tested first and rolled back if the test fails; "
            "optionally obtains a certificate with certbot afterwards."
        ),
        arguments=CreateSiteArgs,
        handler=create_site,
    ),
    ToolSpec(
        name="vps_nginx_enable_site",
        title="Enable Nginx Site",
        description="Enable an existing site; reverted if the configuration test fails.",
        arguments=SiteArgs,
        handler=enable_site,
    ),
    ToolSpec(
        name="vps_nginx_disable_site",
        title="Disable Nginx Site",
        description="Disable a site; reverted if the configuration test fails.",
        arguments=SiteArgs,
        handler=disable_site,
    ),
    ToolSpec(
        name="vps_nginx_delete_site",
        title="Delete Nginx Site",
        description="Disable and delete a site. The definition is kept as a .bak file.",
        arguments=SiteArgs,
        handler=delete_site,
    ),
]
