"""
Throttle controller.

Paces batch submission with a fixed rest after every N batches, and
retries calls the destination rejects for rate limiting with exponential
backoff.
"""

import time
from typing import Callable, Optional, TypeVar
import structlog

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from exceptions import RateLimitedError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_MARKERS = ("too many requests", "rate limit", "throttl")


def is_rate_limited(error: BaseException) -> bool:
    """
    Check whether a client error is a rate-limit rejection.

    Covers postgrest APIError (code 429), httpx.HTTPStatusError
    (response.status_code 429) and plain messages mentioning the limit.
    """
    if isinstance(error, RateLimitedError):
        return True

    code = getattr(error, "code", None)
    if str(code) == "429":
        return True

    response = getattr(error, "response", None)
    if getattr(response, "status_code", None) == 429:
        return True

    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class ThrottleController:
    """
    Batch pacing and rate-limit backoff.

    Args:
        sleep_every: Rest after every N batches (0 disables)
        sleep_seconds: Rest duration
        max_retries: Attempts per call when rate limited, first try included
        backoff_base_seconds: First backoff wait, doubled per attempt
        backoff_max_seconds: Cap for a single backoff wait
        sleep: Blocking sleep function
    """

    def __init__(
        self,
        sleep_every: int = 10,
        sleep_seconds: float = 1.0,
        max_retries: int = 5,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 60.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.sleep_every = sleep_every
        self.sleep_seconds = sleep_seconds
        self.max_retries = max(1, max_retries)
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._sleep = sleep
        self.rests = 0
        self.retries = 0

    def should_rest(self, batch_number: int, sleep_every: Optional[int] = None) -> bool:
        """True after every sleep_every-th batch (batch numbers are 1-based)."""
        every = self.sleep_every if sleep_every is None else sleep_every
        return every > 0 and batch_number > 0 and batch_number % every == 0

    def rest(self, seconds: Optional[float] = None) -> None:
        """Blocking pause."""
        duration = self.sleep_seconds if seconds is None else seconds
        logger.info("rest_pause", seconds=duration)
        self._sleep(duration)
        self.rests += 1

    def pace(self, batch_number: int) -> bool:
        """Rest if batch_number calls for it. Returns whether it rested."""
        if not self.should_rest(batch_number):
            return False
        self.rest()
        return True

    def call_with_backoff(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """
        Call fn, retrying on RateLimitedError with exponential backoff.

        Raises:
            RateLimitedError: If every attempt was rate limited
            Exception: Any other error from fn, unretried
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(
                multiplier=self.backoff_base_seconds,
                max=self.backoff_max_seconds
            ),
            retry=retry_if_exception_type(RateLimitedError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        self.retries += 1
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "rate_limited_retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_retries,
            wait_seconds=round(wait, 2)
        )
