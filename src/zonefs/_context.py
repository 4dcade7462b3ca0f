"""CallContext: caller-supplied cancellation and deadline for remote calls."""

from __future__ import annotations

import itertools
import threading
import time
from typing import Callable

from zonefs._errors import OperationCancelled


class CallContext:
    """Cancellation flag plus optional deadline shared by the attempts of a call.

    One context may be passed to several operations. Cancelling it aborts any
    pending backoff sleep, stops further attempts and closes the responses
    registered with :meth:`on_cancel`, so a body being read or an open download
    stream fails at once. A request still waiting for its response headers is
    bounded by its timeout, which never exceeds the context's deadline.

    :param timeout: Seconds from now after which the context expires.
    """

    __slots__ = ("_event", "_deadline", "_lock", "_callbacks", "_tokens")

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = None if timeout is None else time.monotonic() + timeout
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._tokens = itertools.count()

    def cancel(self) -> None:
        """Cancel the context. Safe to call from any thread."""
        with self._lock:
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` when the context is cancelled.

        Runs it immediately if the context is already cancelled.

        :returns: A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                token = next(self._tokens)
                self._callbacks[token] = callback
                return lambda: self._forget(token)
        callback()
        return lambda: None

    def _forget(self, token: int) -> None:
        with self._lock:
            self._callbacks.pop(token, None)

    @property
    def cancelled(self) -> bool:
        """``True`` once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def error(self, path: str | None = None) -> OperationCancelled | None:
        """The error describing why the context is unusable, ``None`` while it is usable."""
        if self._event.is_set():
            return OperationCancelled("Operation cancelled", path=path)
        if self.cancelled:
            return OperationCancelled("Deadline exceeded", path=path)
        return None

    def check(self, path: str | None = None) -> None:
        """Raise if the context can no longer be used.

        :raises OperationCancelled: If cancelled or expired.
        """
        error = self.error(path)
        if error is not None:
            raise error

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, waking early on cancellation or at the deadline."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)

    def __repr__(self) -> str:
        return f"CallContext(cancelled={self.cancelled!r}, remaining={self.remaining()!r})"
