import asyncio
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from helpers import NGINX_RELOAD, NGINX_TEST, failed, ok, scripted
from vps_gateway.errors import ErrorKind
from vps_gateway.models import SiteState
from vps_gateway.sites import PostStep, SiteManager, diagnostic, render_proxy_site, render_static_site

GOOD = "server { listen 80; server_name example.com; }\n"
BAD = "server { listen 80; server_name example.com;\n"
NGINX_ERROR = 'nginx: [emerg] unexpected end of file, expecting "}" in /etc/nginx/sites-enabled/example:2'


def commands(runner: AsyncMock) -> list[str]:
    return [call.args[0] for call in runner.run.await_args_list]


def reject_config(runner: AsyncMock) -> None:
    runner.run.side_effect = scripted({NGINX_TEST: failed(NGINX_ERROR)})


@pytest.mark.asyncio
async def test_publish_new_site(sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]) -> None:
    available, enabled = site_dirs

    outcome = await sites.publish("example", GOOD)

    assert outcome.ok and not outcome.partial
    assert (available / "example").read_text() == GOOD
    assert (enabled / "example").is_symlink()
    assert os.readlink(enabled / "example") == str(available / "example")
    assert commands(mock_runner) == [NGINX_TEST, NGINX_RELOAD]
    assert sites.state("example") is SiteState.ACTIVE


@pytest.mark.asyncio
async def test_rejected_new_site_leaves_nothing_behind(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    reject_config(mock_runner)

    outcome = await sites.publish("example", BAD)

    assert not outcome.ok
    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert outcome.message == NGINX_ERROR
    assert outcome.render() == f"Configuration test failed: {NGINX_ERROR}"
    assert not (available / "example").exists()
    assert not (enabled / "example").is_symlink()
    assert NGINX_RELOAD not in commands(mock_runner)
    assert sites.state("example") is SiteState.ABSENT


@pytest.mark.asyncio
async def test_rejected_update_of_active_site_restores_previous(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    await sites.publish("example", GOOD)
    mock_runner.run.reset_mock()
    reject_config(mock_runner)

    outcome = await sites.publish("example", BAD)

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert (available / "example").read_text() == GOOD
    assert (enabled / "example").is_symlink()
    assert sites.state("example") is SiteState.ACTIVE
    assert commands(mock_runner) == [NGINX_TEST]


@pytest.mark.asyncio
async def test_rejected_update_of_available_site_keeps_backup(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, _ = site_dirs
    (available / "example").write_text(GOOD)
    reject_config(mock_runner)

    outcome = await sites.publish("example", BAD)

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert not (available / "example").exists()
    assert (available / "example.bak").read_text() == GOOD
    assert any("example.bak" in w.message for w in outcome.warnings)


@pytest.mark.asyncio
async def test_publishing_same_definition_twice(sites: SiteManager, site_dirs: tuple[Path, Path]) -> None:
    available, enabled = site_dirs

    first = await sites.publish("example", GOOD)
    second = await sites.publish("example", GOOD)

    assert first.ok and second.ok
    assert (available / "example").read_text() == GOOD
    assert sorted(p.name for p in available.iterdir()) == ["example", "example.bak"]
    assert [p.name for p in enabled.iterdir()] == ["example"]


@pytest.mark.asyncio
async def test_publish_without_activation_skips_validation(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs

    outcome = await sites.publish("example", GOOD, activate=False)

    assert outcome.ok
    assert "not enabled" in outcome.message
    assert (available / "example").exists()
    assert not (enabled / "example").exists()
    mock_runner.run.assert_not_awaited()
    assert sites.state("example") is SiteState.AVAILABLE


@pytest.mark.asyncio
async def test_reload_failure_is_partial_success(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    _, enabled = site_dirs
    mock_runner.run.side_effect = scripted({NGINX_RELOAD: failed("nginx.service is not active")})

    outcome = await sites.publish("example", GOOD)

    assert outcome.ok
    assert outcome.partial
    assert outcome.warnings[0].kind is ErrorKind.RELOAD_FAILURE
    assert "nginx.service is not active" in outcome.render()
    # A validated change stays in place even if the reload fails.
    assert (enabled / "example").is_symlink()


@pytest.mark.asyncio
async def test_post_steps_run_after_reload(sites: SiteManager, mock_runner: AsyncMock) -> None:
    step = PostStep(name="TLS certificate", command="certbot --nginx -d example.com")

    outcome = await sites.publish("example", GOOD, post_steps=[step])

    assert outcome.ok and not outcome.partial
    assert commands(mock_runner) == [NGINX_TEST, NGINX_RELOAD, step.command]
    assert "TLS certificate: done." in outcome.message


@pytest.mark.asyncio
async def test_failed_post_step_is_a_warning(sites: SiteManager, mock_runner: AsyncMock) -> None:
    step = PostStep(name="TLS certificate", command="certbot --nginx -d example.com")
    mock_runner.run.side_effect = scripted({step.command: failed("Challenge failed")})

    outcome = await sites.publish("example", GOOD, post_steps=[step])

    assert outcome.ok
    assert outcome.warnings[0].kind is ErrorKind.EXECUTION_FAILURE
    assert "Challenge failed" in outcome.warnings[0].message


@pytest.mark.asyncio
async def test_post_steps_skipped_when_rejected(sites: SiteManager, mock_runner: AsyncMock) -> None:
    step = PostStep(name="TLS certificate", command="certbot --nginx -d example.com")
    reject_config(mock_runner)

    await sites.publish("example", BAD, post_steps=[step])

    assert step.command not in commands(mock_runner)


@pytest.mark.asyncio
async def test_enable_available_site(sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]) -> None:
    available, enabled = site_dirs
    (available / "example").write_text(GOOD)

    outcome = await sites.enable("example")

    assert outcome.ok
    assert (enabled / "example").is_symlink()
    assert commands(mock_runner) == [NGINX_TEST, NGINX_RELOAD]


@pytest.mark.asyncio
async def test_enable_rejected_is_reverted(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    (available / "example").write_text(BAD)
    reject_config(mock_runner)

    outcome = await sites.enable("example")

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert not (enabled / "example").exists()
    assert (available / "example").read_text() == BAD


@pytest.mark.asyncio
async def test_enable_absent_site_fails(sites: SiteManager, mock_runner: AsyncMock) -> None:
    outcome = await sites.enable("ghost")

    assert outcome.error is ErrorKind.IO_FAILURE
    mock_runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_enable_twice_is_a_no_op(sites: SiteManager, mock_runner: AsyncMock) -> None:
    await sites.publish("example", GOOD)
    mock_runner.run.reset_mock()

    outcome = await sites.enable("example")

    assert outcome.ok
    assert "already enabled" in outcome.message
    mock_runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_disable_site(sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]) -> None:
    available, enabled = site_dirs
    await sites.publish("example", GOOD)
    mock_runner.run.reset_mock()

    outcome = await sites.disable("example")

    assert outcome.ok
    assert not (enabled / "example").exists()
    assert (available / "example").exists()
    assert commands(mock_runner) == [NGINX_TEST, NGINX_RELOAD]


@pytest.mark.asyncio
async def test_disable_rejected_restores_link(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    await sites.publish("example", GOOD)
    reject_config(mock_runner)

    outcome = await sites.disable("example")

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert os.readlink(enabled / "example") == str(available / "example")


@pytest.mark.asyncio
async def test_disable_not_enabled_is_a_no_op(sites: SiteManager, mock_runner: AsyncMock) -> None:
    outcome = await sites.disable("example")

    assert outcome.ok
    mock_runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_active_site(sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]) -> None:
    available, enabled = site_dirs
    await sites.publish("example", GOOD)
    mock_runner.run.reset_mock()

    outcome = await sites.delete("example")

    assert outcome.ok
    assert not (enabled / "example").exists()
    assert not (available / "example").exists()
    assert (available / "example.bak").read_text() == GOOD
    assert commands(mock_runner) == [NGINX_RELOAD]


@pytest.mark.asyncio
async def test_delete_available_site_does_not_reload(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, _ = site_dirs
    (available / "example").write_text(GOOD)

    outcome = await sites.delete("example")

    assert outcome.ok
    mock_runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_absent_site_fails(sites: SiteManager) -> None:
    outcome = await sites.delete("ghost")
    assert outcome.error is ErrorKind.IO_FAILURE


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["../etc", "a/b", ".hidden", "site.bak", "", "a..b"])
async def test_invalid_site_names_are_denied(sites: SiteManager, mock_runner: AsyncMock, name: str) -> None:
    outcome = await sites.publish(name, GOOD)

    assert outcome.error is ErrorKind.ACCESS_DENIED
    mock_runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_sites_hides_backups(sites: SiteManager) -> None:
    await sites.publish("alpha", GOOD)
    await sites.publish("alpha", GOOD)
    await sites.publish("beta", GOOD, activate=False)

    listing = sites.list_sites()

    assert listing.available == ["alpha", "beta"]
    assert listing.enabled == ["alpha"]


def test_read_site(sites: SiteManager, site_dirs: tuple[Path, Path]) -> None:
    available, _ = site_dirs
    (available / "example").write_text(GOOD)

    assert sites.read_site("example") == GOOD


def test_diagnostic_prefers_validator_stderr() -> None:
    assert diagnostic(failed("syntax error", stdout="ignored")) == "syntax error"
    assert diagnostic(failed("", stdout="on stdout")) == "on stdout"
    assert diagnostic(ok()) == "(no output)"


def test_rendered_templates() -> None:
    proxy = render_proxy_site("app.example.com", 8080)
    static = render_static_site("www.example.com", "/var/www/site")

    assert "server_name app.example.com;" in proxy
    assert "proxy_pass http://127.0.0.1:8080;" in proxy
    assert "root /var/www/site;" in static
    assert proxy.count("{") == proxy.count("}")


@pytest.mark.asyncio
async def test_unactivated_update_of_enabled_site_is_tested(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    await sites.publish("example", GOOD)
    mock_runner.run.reset_mock()
    reject_config(mock_runner)

    outcome = await sites.publish("example", BAD, activate=False)

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert (available / "example").read_text() == GOOD
    assert (enabled / "example").is_symlink()
    assert commands(mock_runner) == [NGINX_TEST]


@pytest.mark.asyncio
async def test_unactivated_update_of_enabled_site_is_not_reloaded(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, _ = site_dirs
    await sites.publish("example", GOOD)
    mock_runner.run.reset_mock()
    updated = GOOD.replace("listen 80", "listen 8080")

    outcome = await sites.publish("example", updated, activate=False)

    assert outcome.ok
    assert "next reload" in outcome.message
    assert (available / "example").read_text() == updated
    assert commands(mock_runner) == [NGINX_TEST]


@pytest.mark.asyncio
async def test_rejected_update_restores_without_backup(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    await sites.publish("example", GOOD)
    reject_config(mock_runner)

    with patch("vps_gateway.files.shutil.copy2", side_effect=PermissionError("read-only")):
        outcome = await sites.publish("example", BAD)

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert (available / "example").read_text() == GOOD
    assert (enabled / "example").is_symlink()


@pytest.mark.asyncio
async def test_unrestorable_rejected_update_is_disabled(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    _, enabled = site_dirs
    await sites.publish("example", GOOD)
    reject_config(mock_runner)

    with patch.object(SiteManager, "_restore", return_value=False):
        outcome = await sites.publish("example", BAD)

    assert outcome.error is ErrorKind.VALIDATION_FAILURE
    assert not (enabled / "example").is_symlink()
    assert any("disabled" in w.message for w in outcome.warnings)


@pytest.mark.asyncio
async def test_hand_placed_enabled_file_is_left_alone(
    sites: SiteManager, mock_runner: AsyncMock, site_dirs: tuple[Path, Path]
) -> None:
    available, enabled = site_dirs
    (available / "example").write_text(GOOD)
    (enabled / "example").write_text("LIVE COPY")

    published = await sites.publish("example", BAD)
    disabled = await sites.disable("example")
    deleted = await sites.delete("example")

    for outcome in (published, disabled, deleted):
        assert outcome.error is ErrorKind.IO_FAILURE
        assert "not a symlink" in outcome.message
    assert (enabled / "example").read_text() == "LIVE COPY"
    assert not (enabled / "example").is_symlink()
    assert (available / "example").read_text() == GOOD
    mock_runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_filesystem_work_runs_in_worker_threads(sites: SiteManager) -> None:
    with patch("vps_gateway.sites.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        await sites.publish("example", GOOD)
        await sites.disable("example")
        await sites.enable("example")
        await sites.delete("example")

    offloaded = {call.args[0].__name__ for call in to_thread.call_args_list}
    assert {"_capture", "write_with_backup", "_link", "_detach", "state", "_remove"} <= offloaded
