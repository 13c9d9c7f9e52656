"""
Update and reinstall batches.

Both modes share the same pipeline per binary (read build info, decide,
run go install) and differ only in their strategy: how the decision is
made and which version gets installed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .buildinfo import BuildRecord, read_build_info
from .cancellation import CancellationToken
from .common import vlog
from .errors import LookupFailure, MalformedArtifact
from .invoker import install_module
from .modules import LATEST
from .policy import Decision, decide_reinstall, decide_update, parse_module_version
from .proxy import get_latest_version
from .runner import SKIPPED, SUCCEEDED, ActionOutcome, BatchResult, OutcomeCollector, run_batch


MODE_UPDATE = "update"
MODE_REINSTALL = "reinstall"

DEVEL_VERSION = "(devel)"


@dataclass(frozen=True)
class BatchRequest:
    """
    Work unit for one run.

    Attributes:
        paths: Binary paths to process
        mode: "update" or "reinstall"
        reference_compiler_version: Installed Go version (reinstall threshold)
        concurrency_limit: Maximum simultaneous go install invocations
        force: Reinstall even when the binary is up to date (reinstall only)
        go_command: Go executable
        read_timeout: Per-binary build info read deadline in seconds
        proxy_url: Module proxy for update lookups
        lookup_timeout: Proxy request timeout in seconds
        verbose: Enable verbose logging
    """
    paths: tuple[str, ...]
    mode: str = MODE_REINSTALL
    reference_compiler_version: str = ""
    concurrency_limit: int = 1
    force: bool = False
    go_command: str = "go"
    read_timeout: float | None = None
    proxy_url: str | None = None
    lookup_timeout: float = 10
    verbose: bool = False

    def __post_init__(self):
        """Validate request after initialization."""
        if self.mode not in {MODE_UPDATE, MODE_REINSTALL}:
            raise ValueError(f"Invalid mode: {self.mode}. Must be 'update' or 'reinstall'")
        if self.concurrency_limit < 1:
            raise ValueError(f"Invalid concurrency_limit: {self.concurrency_limit}. Must be at least 1")
        if self.mode == MODE_REINSTALL and not self.reference_compiler_version:
            raise ValueError("reinstall mode requires a reference compiler version")


@dataclass(frozen=True)
class ReinstallStrategy:
    """Rebuild binaries compiled with an older Go, at their recorded module version."""
    reference_compiler_version: str
    force: bool = False
    go_command: str = "go"

    def plan(self, record: BuildRecord, token: CancellationToken, verbose: bool = False) -> Decision:
        try:
            decision = decide_reinstall(record.compiler_version, self.reference_compiler_version, self.force)
        except ValueError as e:
            raise MalformedArtifact(record.artifact_path, str(e)) from e
        return Decision(decision.act, decision.reason, record.module_version)

    def apply(self, record: BuildRecord, decision: Decision, token: CancellationToken, verbose: bool = False) -> None:
        vlog(f"reinstalling ({record.path}@{decision.version})", verbose)
        install_module(record.path, decision.version, self.go_command, token, verbose)


@dataclass(frozen=True)
class UpdateStrategy:
    """Update binaries whose module has a newer published version."""
    proxy_url: str | None = None
    lookup_timeout: float = 10
    go_command: str = "go"

    def plan(self, record: BuildRecord, token: CancellationToken, verbose: bool = False) -> Decision:
        if record.module_version == DEVEL_VERSION:
            return Decision(False, f"built from a {DEVEL_VERSION} module, no published version to compare")
        try:
            parse_module_version(record.module_version)
        except ValueError as e:
            raise MalformedArtifact(record.artifact_path, f"invalid module version: {e}") from e

        latest = get_latest_version(record.module_path, self.proxy_url, self.lookup_timeout, token, verbose)
        try:
            return decide_update(record.module_version, latest)
        except ValueError as e:
            raise LookupFailure(record.module_path, f"invalid latest version {latest!r}: {e}") from e

    def apply(self, record: BuildRecord, decision: Decision, token: CancellationToken, verbose: bool = False) -> None:
        vlog(f"updating ({record.path}) {decision.reason}", verbose)
        install_module(record.path, LATEST, self.go_command, token, verbose)


Strategy = Union[ReinstallStrategy, UpdateStrategy]


def strategy_for(request: BatchRequest) -> Strategy:
    """Build the strategy matching the request's mode."""
    if request.mode == MODE_UPDATE:
        return UpdateStrategy(
            proxy_url=request.proxy_url,
            lookup_timeout=request.lookup_timeout,
            go_command=request.go_command,
        )
    return ReinstallStrategy(
        reference_compiler_version=request.reference_compiler_version,
        force=request.force,
        go_command=request.go_command,
    )


def process_binary(
    path: str,
    strategy: Strategy,
    token: CancellationToken,
    read_timeout: float | None = None,
    verbose: bool = False,
) -> ActionOutcome:
    """
    Read, decide and (if needed) rebuild one binary.

    Errors propagate; the batch runner turns them into failed outcomes.

    Returns:
        Skipped or succeeded outcome
    """
    record = read_build_info(path, token, read_timeout, verbose)
    decision = strategy.plan(record, token, verbose)

    if not decision.act:
        vlog(f"skipping ({path}): {decision.reason}", verbose)
        return ActionOutcome(path, SKIPPED, decision.reason)

    strategy.apply(record, decision, token, verbose)
    return ActionOutcome(path, SUCCEEDED, decision.reason)


def execute_batch(
    request: BatchRequest,
    token: CancellationToken | None = None,
    collector: OutcomeCollector | None = None,
) -> BatchResult:
    """
    Run an update or reinstall batch.

    Args:
        request: Batch to run
        token: Cancellation token (e.g. fired by SIGINT)
        collector: Optional outcome collector with progress callbacks

    Returns:
        BatchResult; its error property aggregates every failure
    """
    strategy = strategy_for(request)

    def action(path: str, item_token: CancellationToken) -> ActionOutcome:
        return process_binary(path, strategy, item_token, request.read_timeout, request.verbose)

    vlog(f"going to check these binaries ({request.mode} mode):", request.verbose)
    for path in request.paths:
        vlog(f"\t{path}", request.verbose)

    return run_batch(
        request.paths,
        request.concurrency_limit,
        action,
        token=token,
        collector=collector,
        verbose=request.verbose,
    )
