"""
Bounded retry for operations that fail transiently.

VBoxManage releases the session lock on a VM asynchronously, so an
``unregistervm`` issued right after a power-off can fail for a moment and
then succeed. RetryPolicy re-runs such operations with a capped backoff and
stops early when the caller's cancel event is set.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from .exceptions import ExecutionError, RetryCancelledError, ToolReportedError
from .logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry settings plus an optional cancellation event.

    With the defaults (initial and max delay both one second) the multiplier
    has no visible effect: the operation is retried every second, up to five
    attempts in total.
    """

    attempts: int = 5
    initial_delay: float = 1.0
    max_delay: float = 1.0
    multiplier: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (ExecutionError, ToolReportedError)
    cancel: Optional[threading.Event] = field(default=None, repr=False)

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")

    @classmethod
    def from_settings(cls, settings: Any, cancel: Optional[threading.Event] = None) -> "RetryPolicy":
        """Build a policy from a RetrySettings model."""
        return cls(
            attempts=settings.attempts,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            multiplier=settings.multiplier,
            cancel=cancel,
        )

    def _sleep(self, seconds: float) -> None:
        if self.cancel is not None:
            self.cancel.wait(seconds)
        else:
            time.sleep(seconds)

    def _stop(self):
        stop = stop_after_attempt(self.attempts)
        if self.cancel is not None:
            stop = stop | stop_when_event_set(self.cancel)
        return stop

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "retry.attempt_failed",
            attempt=retry_state.attempt_number,
            max_attempts=self.attempts,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )

    def call(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke ``operation`` until it succeeds, is exhausted or cancelled.

        Exhaustion re-raises the last error unchanged. Cancellation raises
        RetryCancelledError carrying the last error.
        """
        retrying = Retrying(
            stop=self._stop(),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.multiplier,
                min=0,
                max=self.max_delay,
            ),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        last_error: Optional[BaseException] = None
        attempts = 0
        try:
            for attempt in retrying:
                with attempt:
                    if self.cancel is not None and self.cancel.is_set():
                        raise RetryCancelledError(
                            "Operation cancelled",
                            attempts=attempts,
                            last_error=last_error,
                        )
                    attempts += 1
                    try:
                        return operation(*args, **kwargs)
                    except self.retry_on as e:
                        last_error = e
                        raise
        except self.retry_on:
            if self.cancel is not None and self.cancel.is_set():
                raise RetryCancelledError(
                    "Operation cancelled",
                    attempts=attempts,
                    last_error=last_error,
                ) from last_error
            raise

