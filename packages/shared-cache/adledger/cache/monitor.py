"""Per client/platform fetch health, fed by synchronous fetches and background refreshes."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from adledger.connectors import AuthError, Platform

logger = logging.getLogger(__name__)


class ClientHealth(str, Enum):
    """Fetch health of one client on one platform."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"  # last fetch failed transiently
    AUTH_FAILED = "auth_failed"  # credentials rejected, needs re-authorization


@dataclass(frozen=True)
class RefreshFailure:
    """One recorded fetch failure."""

    client_id: str
    platform: Platform
    error_type: str
    message: str
    occurred_at: datetime


class RefreshMonitor:
    """Track fetch outcomes so operators can see which credentials need attention.

    Example:
        monitor = RefreshMonitor()
        monitor.record_failure("hotel_1", Platform.META, AuthError("token expired"))
        monitor.health("hotel_1", Platform.META)  # ClientHealth.AUTH_FAILED
    """

    def __init__(self, max_failures: int = 100):
        self._health: dict[tuple[str, Platform], ClientHealth] = {}
        self._failures: deque[RefreshFailure] = deque(maxlen=max_failures)
        self._lock = threading.Lock()

    def record_success(self, client_id: str, platform: Platform) -> None:
        with self._lock:
            previous = self._health.get((client_id, platform))
            self._health[(client_id, platform)] = ClientHealth.HEALTHY
        if previous not in (None, ClientHealth.HEALTHY):
            logger.info(f"{client_id}/{platform.value} recovered from {previous.value}")

    def record_failure(self, client_id: str, platform: Platform, error: BaseException) -> ClientHealth:
        """Record a failed fetch and return the resulting health."""
        health = ClientHealth.AUTH_FAILED if isinstance(error, AuthError) else ClientHealth.DEGRADED
        failure = RefreshFailure(
            client_id=client_id,
            platform=platform,
            error_type=type(error).__name__,
            message=str(error),
            occurred_at=datetime.now(UTC),
        )
        with self._lock:
            self._health[(client_id, platform)] = health
            self._failures.append(failure)
        if health is ClientHealth.AUTH_FAILED:
            logger.error(f"Credentials rejected for {client_id}/{platform.value}: {error}")
        return health

    def health(self, client_id: str, platform: Platform) -> ClientHealth:
        with self._lock:
            return self._health.get((client_id, platform), ClientHealth.HEALTHY)

    def failures(self, client_id: str | None = None) -> list[RefreshFailure]:
        """Recent failures, oldest first."""
        with self._lock:
            return [f for f in self._failures if client_id is None or f.client_id == client_id]

    def unhealthy(self) -> dict[tuple[str, Platform], ClientHealth]:
        """Every client/platform whose last fetch failed."""
        with self._lock:
            return {key: h for key, h in self._health.items() if h is not ClientHealth.HEALTHY}
