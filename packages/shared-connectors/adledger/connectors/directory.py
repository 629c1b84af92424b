"""Client directory - read access to clients owned by the application."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from adledger.connectors.config import Client


class ClientDirectory(ABC):
    """Read-only view of the application's clients."""

    @abstractmethod
    def get(self, client_id: str) -> Client | None:
        """Return the client or None if unknown."""
        pass  # pragma: no cover

    @abstractmethod
    def list_active(self) -> list[Client]:
        """Return every active client."""
        pass  # pragma: no cover


class InMemoryClientDirectory(ClientDirectory):
    """Dictionary-backed directory, used by tests and small deployments.

    Example:
        directory = InMemoryClientDirectory([
            Client("hotel_1", "Hotel One", [PlatformAccount(Platform.META, "act_1")]),
        ])
    """

    def __init__(self, clients: list[Client] | None = None):
        self._clients: dict[str, Client] = {}
        self._lock = threading.Lock()
        for client in clients or []:
            self.add(client)

    def add(self, client: Client) -> None:
        with self._lock:
            self._clients[client.client_id] = client

    def remove(self, client_id: str) -> None:
        with self._lock:
            self._clients.pop(client_id, None)

    def get(self, client_id: str) -> Client | None:
        with self._lock:
            return self._clients.get(client_id)

    def list_active(self) -> list[Client]:
        with self._lock:
            return [c for c in self._clients.values() if c.is_active]
