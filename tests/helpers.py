"""Canned process results shared by the test modules."""

from typing import Any, Callable

from vps_gateway.models import ExecutionResult

NGINX_TEST = "nginx -t"
NGINX_RELOAD = "systemctl reload nginx"


def ok(stdout: str = "", stderr: str = "") -> ExecutionResult:
    return ExecutionResult(stdout=stdout, stderr=stderr, succeeded=True, exit_code=0)


def failed(stderr: str = "boom", exit_code: int | None = 1, stdout: str = "") -> ExecutionResult:
    return ExecutionResult(stdout=stdout, stderr=stderr, succeeded=False, exit_code=exit_code)


def scripted(results: dict[str, ExecutionResult]) -> Callable[..., ExecutionResult]:
    """side_effect for runner.run: canned result per command, success otherwise."""

    def _run(command: str, *args: Any, **kwargs: Any) -> ExecutionResult:
        return results.get(command, ok())

    return _run
