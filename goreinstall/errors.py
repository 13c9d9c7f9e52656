"""
Error kinds raised while inspecting and rebuilding binaries.

Every per-binary failure is one of these; the batch runner collects them
into an AggregateError instead of stopping at the first one.
"""

from __future__ import annotations

from typing import Sequence


class GoReinstallError(Exception):
    """Base exception for goreinstall errors."""
    pass


class NotReadable(GoReinstallError):
    """Raised when a binary cannot be opened for reading."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"could not open ({path}): {reason}")


class MalformedArtifact(GoReinstallError):
    """Raised when a binary carries no recognizable Go build information."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"could not read build info of ({path}): {reason}")


class Cancelled(GoReinstallError):
    """Raised when an operation observes a cancelled token."""

    def __init__(self, reason: str = "operation cancelled"):
        self.reason = reason
        super().__init__(reason)


class DeadlineExceeded(Cancelled):
    """Raised when a read deadline passes before the read completed."""

    def __init__(self, reason: str = "deadline exceeded"):
        super().__init__(reason)


class InvalidModuleReference(GoReinstallError):
    """Raised when a module path or version fails validation."""

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"invalid module reference ({reference}): {reason}")


class ExternalToolFailure(GoReinstallError):
    """
    Raised when the external build tool fails to start or exits non-zero.

    Attributes:
        command: Command line that was run
        exit_code: Process exit code, or None if the process never started
    """

    def __init__(self, command: tuple[str, ...], exit_code: int | None, reason: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.reason = reason
        if exit_code is None:
            message = f"could not run ({' '.join(command)}): {reason}"
        else:
            message = f"({' '.join(command)}) exited with code {exit_code}"
        super().__init__(message)


class LookupFailure(GoReinstallError):
    """Raised when the latest version of a module cannot be determined."""

    def __init__(self, module_path: str, reason: str):
        self.module_path = module_path
        self.reason = reason
        super().__init__(f"could not look up latest version of ({module_path}): {reason}")


class GoEnvError(GoReinstallError):
    """Raised when (go env -json) cannot be run or parsed."""
    pass


class NoGoBinOrPath(GoEnvError):
    """Raised when neither GOBIN nor GOPATH is set."""

    def __init__(self):
        super().__init__("unable to find a GOPATH or GOBIN from command (go env -json)")


class AggregateError(GoReinstallError):
    """
    One error per failed or cancelled binary of a batch.

    Attributes:
        failures: (binary path, error) pairs in batch order
    """

    def __init__(self, failures: Sequence[tuple[str, BaseException]]):
        self.failures = tuple(failures)
        lines = [f"{len(self.failures)} binaries failed:"]
        for path, error in self.failures:
            lines.append(f"  {path}: {error}")
        super().__init__("\n".join(lines))

    @property
    def errors(self) -> list[BaseException]:
        return [error for _, error in self.failures]

    def __len__(self) -> int:
        return len(self.failures)
