"""
Cooperative cancellation for blocking operations.

A CancellationToken is passed explicitly to every component that blocks
(artifact reads, proxy lookups, subprocess waits). Components call
check() at each suspension point instead of relying on process-wide
state.
"""

from __future__ import annotations

import io
import threading
import time
from typing import BinaryIO

from .errors import Cancelled, DeadlineExceeded


class CancellationToken:
    """
    Thread-safe cancellation signal with an optional deadline.

    Child tokens created with with_timeout() are cancelled when their
    parent is, and additionally expire at their own deadline.
    """

    def __init__(self, parent: CancellationToken | None = None, deadline: float | None = None):
        self._event = threading.Event()
        self._parent = parent
        self._deadline = deadline
        self._reason = "operation cancelled"

    def cancel(self, reason: str = "operation cancelled") -> None:
        """Fire the signal. Idempotent."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def deadline(self) -> float | None:
        """Earliest monotonic deadline of this token and its parents."""
        deadlines = []
        token: CancellationToken | None = self
        while token is not None:
            if token._deadline is not None:
                deadlines.append(token._deadline)
            token = token._parent
        return min(deadlines) if deadlines else None

    def expired(self) -> bool:
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called on this token or any parent."""
        token: CancellationToken | None = self
        while token is not None:
            if token._event.is_set():
                return True
            token = token._parent
        return False

    def check(self) -> None:
        """
        Raise if the token is cancelled or past its deadline.

        Raises:
            Cancelled: If cancel() was called on this token or a parent
            DeadlineExceeded: If the deadline has passed
        """
        token: CancellationToken | None = self
        while token is not None:
            if token._event.is_set():
                raise Cancelled(token._reason)
            token = token._parent
        if self.expired():
            raise DeadlineExceeded()

    def wait(self, timeout: float) -> bool:
        """Block up to timeout seconds; return True if cancelled meanwhile."""
        end = time.monotonic() + timeout
        while True:
            if self.cancelled or self.expired():
                return True
            remaining = end - time.monotonic()
            if remaining <= 0:
                return False
            self._event.wait(min(remaining, 0.05))

    def with_timeout(self, seconds: float | None) -> CancellationToken:
        """Return a child token that also expires after seconds."""
        if not seconds:
            return CancellationToken(parent=self)
        return CancellationToken(parent=self, deadline=time.monotonic() + seconds)


class CancellableReader(io.RawIOBase):
    """
    Read-only file wrapper that checks a token before every read.

    Reads larger than max_chunk are split so a cancelled token or an
    expired deadline is noticed between chunks of a long read.
    """

    def __init__(self, raw: BinaryIO, token: CancellationToken, max_chunk: int = 1 << 20):
        super().__init__()
        self._raw = raw
        self._token = token
        self._max_chunk = max_chunk

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._token.check()
        return self._raw.seek(offset, whence)

    def tell(self) -> int:
        return self._raw.tell()

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            chunks = []
            while True:
                chunk = self.read(self._max_chunk)
                if not chunk:
                    break
                chunks.append(chunk)
            return b"".join(chunks)

        chunks = []
        remaining = size
        while remaining > 0:
            self._token.check()
            chunk = self._raw.read(min(remaining, self._max_chunk))
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        buffer[:len(data)] = data
        return len(data)

    def read_at(self, offset: int, size: int) -> bytes:
        """Read size bytes at an absolute offset."""
        self.seek(offset)
        return self.read(size)

    def close(self) -> None:
        # The underlying file is owned by the caller.
        super().close()
