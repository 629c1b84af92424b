"""
Retry policy for platform fetches.

- RateLimitError: exponential backoff, never shorter than the platform's
  `retry_after` hint
- UpstreamError: exponential backoff, bounded attempts
- AuthError: raised immediately
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from adledger.connectors.exceptions import RateLimitError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class wait_retry_after(wait_base):
    """Wait for the platform's retry_after hint when it is longer than the backoff."""

    def __init__(self, fallback: wait_base, cap: float):
        self.fallback = fallback
        self.cap = cap

    def __call__(self, retry_state: RetryCallState) -> float:
        wait = self.fallback(retry_state)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError) and exc.retry_after:
            wait = max(wait, min(float(exc.retry_after), self.cap))
        return wait


class RetryPolicy(BaseModel):
    """Bounded retry configuration for fetches."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_multiplier: float = Field(default=1.0, ge=0)
    backoff_min: float = Field(default=1.0, ge=0)
    backoff_max: float = Field(default=30.0, ge=0)
    max_retry_after: float = Field(default=120.0, ge=0)

    @classmethod
    def from_env(cls) -> RetryPolicy:
        """Load configuration from environment variables."""
        return cls(
            max_attempts=int(os.getenv("ADLEDGER_RETRY_MAX_ATTEMPTS", "3")),
            backoff_multiplier=float(os.getenv("ADLEDGER_RETRY_BACKOFF_MULTIPLIER", "1.0")),
            backoff_min=float(os.getenv("ADLEDGER_RETRY_BACKOFF_MIN", "1.0")),
            backoff_max=float(os.getenv("ADLEDGER_RETRY_BACKOFF_MAX", "30.0")),
            max_retry_after=float(os.getenv("ADLEDGER_RETRY_MAX_RETRY_AFTER", "120.0")),
        )

    def retrying(self, sleep: Callable[[float], Any] = time.sleep) -> Retrying:
        """Build a tenacity Retrying controller for this policy."""
        return Retrying(
            retry=retry_if_exception_type((RateLimitError, UpstreamError)),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_retry_after(
                wait_exponential(
                    multiplier=self.backoff_multiplier,
                    min=self.backoff_min,
                    max=self.backoff_max,
                ),
                cap=self.max_retry_after,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=sleep,
            reraise=True,
        )

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call `fn` under this policy, re-raising the last error."""
        return self.retrying()(fn, *args, **kwargs)
