"""Fetcher registry for managing one fetcher per platform."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from adledger.connectors.config import Platform

if TYPE_CHECKING:
    from adledger.connectors.base import BaseFetcher

logger = logging.getLogger(__name__)


class FetcherRegistry:
    """Registry of configured platform fetchers.

    Singleton pattern for global fetcher registration. Fetchers are registered
    as instances because they carry HTTP clients and app credentials.

    Example:
        registry = get_registry()
        registry.register(MetaFetcher(access_token=token))

        fetcher = registry.require(Platform.META)
        records = fetcher.fetch(account, date_range)
    """

    _instance: FetcherRegistry | None = None
    _fetchers: dict[Platform, BaseFetcher]

    def __new__(cls) -> FetcherRegistry:
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._fetchers = {}
        return cls._instance

    def register(self, fetcher: BaseFetcher) -> None:
        """Register a fetcher for its platform, replacing any previous one."""
        self._fetchers[fetcher.platform] = fetcher
        logger.debug(f"Registered fetcher: {fetcher.platform.value}")

    def unregister(self, platform: Platform) -> None:
        """Unregister a platform's fetcher."""
        if platform in self._fetchers:
            del self._fetchers[platform]

    def get(self, platform: Platform) -> BaseFetcher | None:
        """Get the fetcher for a platform, or None if not registered."""
        return self._fetchers.get(platform)

    def require(self, platform: Platform) -> BaseFetcher:
        """Get the fetcher for a platform.

        Raises:
            ValueError: If no fetcher is registered for the platform.
        """
        fetcher = self.get(platform)
        if fetcher is None:
            raise ValueError(f"No fetcher registered for platform: {platform.value}")
        return fetcher

    def list_available(self) -> list[Platform]:
        """List all platforms with a registered fetcher."""
        return list(self._fetchers.keys())

    def is_registered(self, platform: Platform) -> bool:
        return platform in self._fetchers


def get_registry() -> FetcherRegistry:
    """Get the global fetcher registry."""
    return FetcherRegistry()
