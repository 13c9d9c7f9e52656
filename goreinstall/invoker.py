"""
Rebuild execution through `go install`.

Builds the command from a validated module reference and runs it with
the parent's stdout/stderr, waiting for it while watching the
cancellation token.
"""

from __future__ import annotations

import subprocess
import time

from .cancellation import CancellationToken
from .common import vlog
from .errors import Cancelled, ExternalToolFailure
from .modules import escape_path, escape_version


POLL_INTERVAL = 0.1
TERMINATE_GRACE_SECONDS = 5.0


def build_install_command(path: str, version: str, go_command: str = "go") -> tuple[str, ...]:
    """
    Build the go install command line for a module reference.

    Args:
        path: Package or module path to install
        version: Module version, or "latest"

    Returns:
        Command as a tuple of arguments

    Raises:
        InvalidModuleReference: If path or version fails validation
    """
    escaped_path = escape_path(path)
    escaped_version = escape_version(version)
    return (go_command, "install", f"{escaped_path}@{escaped_version}")


def _stop_process(proc: subprocess.Popen, verbose: bool) -> None:
    proc.terminate()
    try:
        proc.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        vlog(f"process {proc.pid} did not exit after SIGTERM, killing it", verbose)
        proc.kill()
        proc.wait()


def install_module(
    path: str,
    version: str,
    go_command: str = "go",
    token: CancellationToken | None = None,
    verbose: bool = False,
) -> None:
    """
    Run `go install path@version` and wait for it to finish.

    Args:
        path: Package or module path to install
        version: Module version to install, or "latest"
        go_command: Go executable to run
        token: Cancellation token; the process is terminated when it fires
        verbose: Enable verbose logging

    Raises:
        InvalidModuleReference: If path or version is invalid (nothing is run)
        ExternalToolFailure: If go cannot be started or exits non-zero
        Cancelled: If the token fires before or during the run
    """
    command = build_install_command(path, version, go_command)

    if token is not None:
        token.check()

    vlog(f"running ({' '.join(command)})", verbose)
    start_time = time.time()

    try:
        # stdout/stderr are inherited so go's own progress stays visible
        proc = subprocess.Popen(command)  # noqa: S603 - arguments validated above
    except OSError as e:
        raise ExternalToolFailure(command, None, e.strerror or str(e)) from e

    while True:
        try:
            returncode = proc.wait(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if token is not None and token.cancelled:
                vlog(f"cancelling ({' '.join(command)})", verbose)
                _stop_process(proc, verbose)
                raise Cancelled(f"({' '.join(command)}) was cancelled")

    duration = time.time() - start_time
    if returncode != 0:
        raise ExternalToolFailure(command, returncode)

    vlog(f"finished ({' '.join(command)}) in {duration:.1f}s", verbose)
