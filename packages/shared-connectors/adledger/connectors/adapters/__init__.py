"""Ad platform fetcher implementations.

Google Ads fetchers are supplied by the application, since they depend on
per-deployment developer tokens.
"""

from adledger.connectors.adapters.meta import MetaFetcher

__all__ = ["MetaFetcher"]
