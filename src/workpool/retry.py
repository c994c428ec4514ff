"""Retry wrappers with exponential backoff and jitter."""

from __future__ import annotations

import functools
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

from workpool.config import (
    DEFAULT_ATTEMPTS,
    DEFAULT_BACKOFF_DURATION_MS,
    DEFAULT_BACKOFF_JITTER_MS,
)
from workpool.timing import delay

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

ErrorObserver = Callable[[Exception], Any]

_NO_DEFAULT: Any = object()


@dataclass(slots=True)
class RetryOptions:
    """Retry policy shared by every call of one wrapped function.

    The wait after failed attempt ``n`` is ``backoff_duration_ms * 2**n`` plus a
    uniform jitter in ``[0, backoff_jitter_ms)``.  Growth is unbounded unless
    ``max_backoff_ms`` is set, in which case the exponential part is capped
    before jitter is added.
    """

    attempts: int = DEFAULT_ATTEMPTS
    backoff_duration_ms: float = DEFAULT_BACKOFF_DURATION_MS
    backoff_jitter_ms: float = DEFAULT_BACKOFF_JITTER_MS
    on_error: ErrorObserver | None = None
    max_backoff_ms: float | None = None
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"Retry attempts must be >= 1, got {self.attempts!r}.")
        if self.backoff_duration_ms < 0:
            raise ValueError("Retry backoff duration must be >= 0 milliseconds.")
        if self.backoff_jitter_ms < 0:
            raise ValueError("Retry backoff jitter must be >= 0 milliseconds.")
        if self.max_backoff_ms is not None and self.max_backoff_ms < 0:
            raise ValueError("Retry max backoff must be >= 0 milliseconds.")

    def compute_backoff_ms(self, attempt: int) -> float:
        """Return the wait in milliseconds after failed attempt ``attempt``."""

        base = self.backoff_duration_ms * 2**attempt
        if self.max_backoff_ms is not None:
            base = min(base, self.max_backoff_ms)
        return base + self.rng.random() * self.backoff_jitter_ms


def with_retry(
    fn: Callable[P, Awaitable[R] | R],
    options: RetryOptions | None = None,
) -> Callable[P, Awaitable[R]]:
    """Wrap ``fn`` so failures are retried before the last error is re-raised.

    ``options.on_error`` sees every failure, including the final one.  Errors
    raised by the observer itself are not caught.
    """

    return _wrap(fn, options if options is not None else RetryOptions(), _NO_DEFAULT)


def with_retry_default(
    fn: Callable[P, Awaitable[R] | R],
    default: R,
    options: RetryOptions | None = None,
) -> Callable[P, Awaitable[R]]:
    """Like ``with_retry`` but returns ``default`` once attempts are exhausted.

    ``default`` is returned as-is; it is neither called nor copied.  Observer
    errors still propagate.
    """

    return _wrap(fn, options if options is not None else RetryOptions(), default)


def _wrap(
    fn: Callable[P, Awaitable[R] | R],
    policy: RetryOptions,
    default: Any,
) -> Callable[P, Awaitable[R]]:
    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        for attempt in range(1, policy.attempts + 1):
            try:
                result = fn(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                return result  # type: ignore[return-value]
            except Exception as error:
                if policy.on_error is not None:
                    policy.on_error(error)
                if attempt >= policy.attempts:
                    logger.warning(
                        "%s failed after %d attempts: %r",
                        _name(fn),
                        policy.attempts,
                        error,
                    )
                    if default is _NO_DEFAULT:
                        raise
                    return default  # type: ignore[no-any-return]
                wait_ms = policy.compute_backoff_ms(attempt)
                logger.debug(
                    "%s attempt %d/%d failed (%r), retrying in %.0f ms",
                    _name(fn),
                    attempt,
                    policy.attempts,
                    error,
                    wait_ms,
                )
            await delay(wait_ms)
        raise AssertionError("unreachable")  # pragma: no cover

    return wrapper


def _name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)
