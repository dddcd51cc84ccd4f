"""
Retry with exponential backoff for flaky reads
"""

import time
from typing import Any, Callable, Optional, Tuple, Type

MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 8000


def backoff_delay_ms(attempt: int, base_ms: int = BASE_DELAY_MS, cap_ms: int = MAX_DELAY_MS) -> int:
    """Delay before retry number `attempt` (0-based): min(base * 2^attempt, cap)."""
    return min(base_ms * (2 ** attempt), cap_ms)


class RetryExhausted(Exception):
    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def retry_with_backoff(
    func: Callable[[], Any],
    max_attempts: int = MAX_ATTEMPTS,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, int, Exception], None]] = None,
) -> Any:
    """
    Call func until it succeeds or max_attempts retries have failed.

    The first call is immediate; each retry waits backoff_delay_ms(n) first,
    so three retries wait 1s, 2s and 4s. on_retry(attempt, delay_ms, error)
    runs before each wait.
    """
    try:
        return func()
    except retry_on as exc:
        last_error = exc

    for attempt in range(max_attempts):
        delay = backoff_delay_ms(attempt)
        if on_retry:
            on_retry(attempt + 1, delay, last_error)
        sleep(delay / 1000)
        try:
            return func()
        except retry_on as exc:
            last_error = exc

    raise RetryExhausted(max_attempts, last_error)
