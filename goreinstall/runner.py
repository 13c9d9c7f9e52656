"""
Bounded-concurrency batch execution with partial failure collection.

Runs one action per binary path on a thread pool, never more than the
concurrency limit at once, and records exactly one outcome per path.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .cancellation import CancellationToken
from .common import vlog
from .errors import AggregateError, Cancelled, GoReinstallError


SKIPPED = "skipped"
SUCCEEDED = "succeeded"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class ActionOutcome:
    """
    Result of processing one binary.

    Attributes:
        path: Binary path
        status: One of "skipped", "succeeded", "failed", "cancelled"
        message: Human-readable detail (why it was skipped, what was done)
        error: Error for failed or cancelled binaries
    """
    path: str
    status: str
    message: str = ""
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SKIPPED, SUCCEEDED)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "status": self.status,
            "message": self.message,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class OutcomeCollector:
    """
    Thread-safe outcome storage for a batch.

    Attributes:
        _lock: Threading lock serializing writes
        _outcomes: Outcomes keyed by input position
        _callbacks: Callbacks invoked with each recorded outcome
        verbose: Log callback failures
    """
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _outcomes: dict[int, ActionOutcome] = field(default_factory=dict)
    _callbacks: list[Callable[[ActionOutcome], None]] = field(default_factory=list)
    verbose: bool = False

    def register_callback(self, callback: Callable[[ActionOutcome], None]) -> None:
        """Register a callback for recorded outcomes."""
        with self._lock:
            self._callbacks.append(callback)

    def record(self, index: int, outcome: ActionOutcome) -> None:
        """Store an outcome, then report it to the callbacks outside the lock."""
        with self._lock:
            self._outcomes[index] = outcome
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(outcome)
            except Exception as e:
                vlog(f"progress callback failed for {outcome.path}: {e}", self.verbose)

    def get(self, index: int) -> ActionOutcome | None:
        with self._lock:
            return self._outcomes.get(index)

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)


@dataclass(frozen=True)
class BatchResult:
    """
    Complete result of a batch run.

    Attributes:
        outcomes: One outcome per path, in input order
        duration_seconds: Total execution time
    """
    outcomes: tuple[ActionOutcome, ...]
    duration_seconds: float = 0.0

    def with_status(self, status: str) -> tuple[ActionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == status)

    @property
    def error(self) -> AggregateError | None:
        """Aggregate of every failed or cancelled binary, or None if all went fine."""
        errors = [(o.path, o.error) for o in self.outcomes if not o.ok and o.error is not None]
        if not errors:
            return None
        return AggregateError(errors)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "outcomes": [o.to_dict() for o in self.outcomes],
            "duration_seconds": self.duration_seconds,
        }

    def summary(self) -> str:
        """Human-readable summary."""
        return (
            f"{len(self.with_status(SUCCEEDED))} succeeded, "
            f"{len(self.with_status(SKIPPED))} skipped, "
            f"{len(self.with_status(FAILED))} failed, "
            f"{len(self.with_status(CANCELLED))} cancelled "
            f"in {self.duration_seconds:.1f}s"
        )


Action = Callable[[str, CancellationToken], ActionOutcome]


def _run_one(
    index: int,
    path: str,
    action: Action,
    token: CancellationToken,
    collector: OutcomeCollector,
    verbose: bool,
) -> None:
    if token.cancelled:
        error = Cancelled("not started: batch cancelled")
        collector.record(index, ActionOutcome(path, CANCELLED, "not started", error))
        return

    try:
        outcome = action(path, token)
    except Cancelled as e:
        outcome = ActionOutcome(path, CANCELLED, str(e), e)
    except GoReinstallError as e:
        vlog(f"failed ({path}): {e}", verbose)
        outcome = ActionOutcome(path, FAILED, str(e), e)
    except Exception as e:
        vlog(f"unexpected error processing ({path}): {e}", verbose)
        outcome = ActionOutcome(path, FAILED, str(e), e)
    collector.record(index, outcome)


def run_batch(
    paths: Sequence[str],
    concurrency_limit: int,
    action: Action,
    token: CancellationToken | None = None,
    collector: OutcomeCollector | None = None,
    verbose: bool = False,
) -> BatchResult:
    """
    Apply action to every path with at most concurrency_limit in flight.

    Every path is attempted; a failing action never stops the others.
    Once the token is cancelled no further actions are started and the
    remaining paths get "cancelled" outcomes. Returns after every started
    action has settled.

    Args:
        paths: Binary paths
        concurrency_limit: Maximum parallel actions (values below 1 mean 1)
        action: Callable(path, token) returning the path's outcome
        token: Cancellation token shared with the actions
        collector: Optional collector, e.g. with progress callbacks
        verbose: Enable verbose logging

    Returns:
        BatchResult with exactly one outcome per path
    """
    token = token if token is not None else CancellationToken()
    collector = collector if collector is not None else OutcomeCollector(verbose=verbose)
    workers = max(1, concurrency_limit)
    start_time = time.time()

    vlog(f"processing {len(paths)} binaries with {workers} workers", verbose)

    if paths:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="goreinstall") as executor:
            futures = [
                executor.submit(_run_one, index, path, action, token, collector, verbose)
                for index, path in enumerate(paths)
            ]
            for future in futures:
                future.result()

    outcomes = [collector.get(index) for index in range(len(paths))]

    return BatchResult(
        outcomes=tuple(outcomes),
        duration_seconds=time.time() - start_time,
    )
