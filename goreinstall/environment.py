"""
Go environment detection and binary discovery.

Asks the go command for GOBIN, GOPATH and GOVERSION and lists the
binaries installed in the resulting directory.
"""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass

from .buildinfo import normalize_go_version
from .common import vlog
from .errors import GoEnvError, NoGoBinOrPath


@dataclass(frozen=True)
class GoEnv:
    """
    Subset of `go env -json` used by goreinstall.

    Attributes:
        gobin: GOBIN (empty when unset)
        gopath: GOPATH (may be an os.pathsep separated list)
        goversion: GOVERSION as reported by go (e.g. "go1.22.1")
    """
    gobin: str = ""
    gopath: str = ""
    goversion: str = ""

    @property
    def compiler_version(self) -> str:
        """GOVERSION without the "go" prefix."""
        return normalize_go_version(self.goversion)

    @property
    def binary_dir(self) -> str:
        """
        Directory go install writes binaries to.

        Raises:
            NoGoBinOrPath: If neither GOBIN nor GOPATH is set
        """
        if self.gobin:
            return self.gobin
        if not self.gopath:
            raise NoGoBinOrPath()
        first = self.gopath.split(os.pathsep)[0]
        return os.path.join(first, "bin")

    @staticmethod
    def from_dict(data: dict) -> GoEnv:
        """Create GoEnv from the decoded `go env -json` output."""
        return GoEnv(
            gobin=data.get("GOBIN", "") or "",
            gopath=data.get("GOPATH", "") or "",
            goversion=data.get("GOVERSION", "") or "",
        )


def get_go_env(go_command: str = "go", timeout: float | None = 30, verbose: bool = False) -> GoEnv:
    """
    Run `go env -json` and parse the variables goreinstall needs.

    Args:
        go_command: Go executable to run
        timeout: Command timeout in seconds
        verbose: Enable verbose logging

    Returns:
        GoEnv with GOBIN, GOPATH and GOVERSION

    Raises:
        GoEnvError: If the command fails or prints invalid JSON
    """
    command = [go_command, "env", "-json"]
    vlog(f"running ({' '.join(command)})", verbose)

    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise GoEnvError(f"could not run ({' '.join(command)}): {e}") from e

    if result.returncode != 0:
        raise GoEnvError(
            f"could not run ({' '.join(command)}): exit code {result.returncode}: {result.stderr.strip()}"
        )

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise GoEnvError(f"could not parse JSON from ({' '.join(command)}): {e}") from e
    if not isinstance(data, dict):
        raise GoEnvError(f"unexpected output from ({' '.join(command)})")

    env = GoEnv.from_dict(data)
    vlog(f"found go version ({env.goversion})", verbose)
    return env


def find_binaries(go_env: GoEnv, verbose: bool = False) -> list[str]:
    """
    List the files in the Go binary directory.

    Args:
        go_env: Go environment
        verbose: Enable verbose logging

    Returns:
        Sorted paths of every non-directory entry

    Raises:
        NoGoBinOrPath: If neither GOBIN nor GOPATH is set
        GoEnvError: If the directory cannot be listed
    """
    binary_dir = os.path.normpath(go_env.binary_dir)
    vlog(f"listing binaries in ({binary_dir})", verbose)

    try:
        with os.scandir(binary_dir) as it:
            entries = list(it)
    except OSError as e:
        raise GoEnvError(f"could not read directory ({binary_dir}): {e}") from e

    paths = sorted(entry.path for entry in entries if not entry.is_dir())
    vlog(f"found {len(paths)} binaries", verbose)
    return paths


def resolve_binary_path(name: str, go_env: GoEnv | None) -> str:
    """
    Resolve a binary named on the command line.

    Names containing a path separator, or naming an existing file, are
    used as given; bare names are looked up in the Go binary directory.
    """
    if os.sep in name or (os.altsep and os.altsep in name) or os.path.exists(name):
        return name
    if go_env is None:
        return name
    try:
        return os.path.join(go_env.binary_dir, name)
    except NoGoBinOrPath:
        return name
