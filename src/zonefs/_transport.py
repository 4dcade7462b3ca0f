"""Rate-limited, retrying execution of storage API requests."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Callable, TypeVar

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_any,
)

from zonefs._context import CallContext
from zonefs._errors import OperationCancelled, RateLimited, TransientNetwork, ZoneFsError

if TYPE_CHECKING:
    from tenacity import RetryCallState

T = TypeVar("T")

log = logging.getLogger(__name__)

TOO_MANY_REQUESTS = 429

# Delay hint attached to every 429; the pacer never sleeps less after one.
RATE_LIMIT_DELAY = 5.0


def drain(response: httpx.Response) -> None:
    """Read whatever is left of a response body and release the connection."""
    try:
        with contextlib.suppress(httpx.HTTPError, httpx.StreamError):
            response.read()
    finally:
        response.close()


def interrupted(
    exc: Exception, ctx: CallContext | None, *, path: str | None = None, zone: str | None = None
) -> ZoneFsError:
    """Classify an error raised while a request or body was in flight.

    A cancelled or expired ``ctx`` means the failure was caused by closing the
    response; anything else is a transient network failure.
    """
    cancelled = ctx.error(path) if ctx is not None else None
    if cancelled is not None:
        return cancelled
    return TransientNetwork(f"{type(exc).__name__}: {exc}", path=path, zone=zone)


def send(
    client: httpx.Client,
    request: httpx.Request,
    *,
    stream: bool = False,
    ctx: CallContext | None = None,
    path: str | None = None,
    zone: str | None = None,
) -> httpx.Response:
    """Issue a single request attempt and classify transport-level outcomes.

    Unless ``stream`` is set the body is read before returning. While it is
    read, cancelling ``ctx`` closes the response.

    :raises TransientNetwork: On connection failures and timeouts.
    :raises RateLimited: On ``429``, after draining and closing the body.
    :raises OperationCancelled: If ``ctx`` was cancelled during the exchange.
    """
    log.debug("%s %s", request.method, request.url)
    try:
        response = client.send(request, stream=True)
    except httpx.TransportError as exc:
        raise interrupted(exc, ctx, path=path, zone=zone) from exc
    if ctx is not None and ctx.cancelled:
        response.close()
        ctx.check(path)
    if response.status_code == TOO_MANY_REQUESTS:
        drain(response)
        raise RateLimited("Too many requests", path=path, zone=zone, retry_after=RATE_LIMIT_DELAY)
    if not stream:
        release = ctx.on_cancel(response.close) if ctx is not None else None
        try:
            response.read()
        except (httpx.HTTPError, httpx.StreamError) as exc:
            response.close()
            raise interrupted(exc, ctx, path=path, zone=zone) from exc
        finally:
            if release is not None:
                release()
    return response


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ZoneFsError) and exc.retryable


class Pacer:
    """Runs request attempts with exponential backoff between retries.

    The sleep before retry ``n`` is ``min_sleep * 2 ** ((n - 1) / decay_constant)``,
    never more than ``max_sleep``. An error carrying a ``retry_after`` hint raises
    the sleep to at least that hint (still capped at ``max_sleep``).

    :param min_sleep: Smallest sleep between attempts, in seconds.
    :param max_sleep: Largest sleep between attempts, in seconds.
    :param decay_constant: Larger values grow the sleep more slowly.
    :param max_attempts: Attempts per call, including the first.
    :param sleep: Sleep function override; defaults to the call context's
        interruptible sleep.
    """

    def __init__(
        self,
        *,
        min_sleep: float = 0.01,
        max_sleep: float = 60.0,
        decay_constant: float = 1.0,
        max_attempts: int = 10,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.min_sleep = min_sleep
        self.max_sleep = max_sleep
        self.decay_constant = decay_constant
        self.max_attempts = max_attempts
        self._sleep = sleep

    def backoff(self, attempt_number: int, error: BaseException | None = None) -> float:
        """Seconds to sleep after failed attempt ``attempt_number`` (1-based)."""
        delay = self.min_sleep * 2 ** ((attempt_number - 1) / self.decay_constant)
        hint = getattr(error, "retry_after", 0.0) or 0.0
        return min(self.max_sleep, max(delay, hint))

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome is not None else None
        return self.backoff(retry_state.attempt_number, error)

    def call(self, attempt: Callable[[], T], ctx: CallContext | None = None, *, path: str | None = None) -> T:
        """Run ``attempt`` until it succeeds, fails terminally, or retries run out.

        ``attempt`` performs exactly one request and raises a classified
        :class:`ZoneFsError` on failure. Errors flagged ``retryable`` are retried;
        anything else propagates at once.

        :raises OperationCancelled: If ``ctx`` is cancelled or expires.
        """
        ctx = ctx or CallContext()

        def _attempt() -> T:
            ctx.check(path)
            return attempt()

        retrying = Retrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_any(stop_after_attempt(self.max_attempts), lambda _state: ctx.cancelled),
            wait=self._wait,
            sleep=self._sleep or ctx.sleep,
            before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
            reraise=True,
        )
        try:
            return retrying(_attempt)
        except ZoneFsError as exc:
            if exc.retryable and ctx.cancelled:
                raise OperationCancelled("Operation cancelled while retrying", path=path) from exc
            raise

    def __repr__(self) -> str:
        return (
            f"Pacer(min_sleep={self.min_sleep!r}, max_sleep={self.max_sleep!r}, "
            f"decay_constant={self.decay_constant!r}, max_attempts={self.max_attempts!r})"
        )
