from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"Request failed after {attempts} attempts. Last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def never_transient(err: Exception) -> bool:
    return False


@dataclass
class RetryPolicy:
    """Retries a callable on transient errors with exponential backoff.

    Only errors accepted by ``is_transient`` are retried. Anything else is
    re-raised on first occurrence. Once ``max_attempts`` calls have failed
    transiently a ``RetryExhaustedError`` chained to the last error is raised.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    is_transient: Callable[[Exception], bool] = never_transient
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    label: str = "retry"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delays(self) -> List[float]:
        return [self.base_delay * (self.multiplier ** index) for index in range(self.max_attempts - 1)]

    def call(self, action: Callable[[], T]) -> T:
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                return action()
            except Exception as exc:
                if not self.is_transient(exc):
                    raise
                if attempt == self.max_attempts:
                    raise RetryExhaustedError(self.max_attempts, exc) from exc
                delay = delays[attempt - 1]
                logger.warning(
                    "[%s] transient error (attempt %d/%d): %s -> sleeping %.1fs",
                    self.label,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                self.sleep(delay)
