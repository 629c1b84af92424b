"""Meta (Facebook) Marketing API fetcher."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from adledger.connectors.base import BaseFetcher
from adledger.connectors.config import DateRange, Platform, PlatformAccount
from adledger.connectors.exceptions import AuthError, RateLimitError, UpstreamError

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com/v18.0"

INSIGHT_FIELDS = (
    "campaign_id",
    "campaign_name",
    "spend",
    "impressions",
    "clicks",
    "actions",
    "action_values",
)

# Graph API error codes
AUTH_ERROR_CODES = {102, 190}  # session / access token invalid
THROTTLE_ERROR_CODES = {4, 17, 32, 613, 80000, 80004}

# HTTP timeouts (in seconds)
API_TIMEOUT = httpx.Timeout(30.0, connect=10.0)  # 30s read, 10s connect

# Safety bound on insight pages per request
MAX_PAGES = 50


def _account_path(account_id: str) -> str:
    """Graph API ad account node, e.g. act_12345."""
    account_id = str(account_id).strip()
    return account_id if account_id.startswith("act_") else f"act_{account_id}"


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class MetaFetcher(BaseFetcher):
    """Fetch campaign-level insights from the Meta Graph API.

    The access token is taken from the account's credentials
    (`credentials["access_token"]`), falling back to the system user token the
    fetcher was created with.

    Example:
        fetcher = MetaFetcher(access_token=os.environ["META_SYSTEM_USER_TOKEN"])
        get_registry().register(fetcher)
    """

    platform = Platform.META

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str = GRAPH_URL,
        client: httpx.Client | None = None,
    ):
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(base_url=self._base_url, timeout=API_TIMEOUT)
        return self._client

    def _token_for(self, account: PlatformAccount) -> str:
        token = account.credentials.get("access_token") or self._access_token
        if not token:
            raise AuthError(f"No Meta access token configured for {account.account_id}")
        return str(token)

    def fetch_raw(self, account: PlatformAccount, date_range: DateRange) -> list[dict[str, Any]]:
        """Fetch one insights row per campaign, following pagination."""
        params: dict[str, Any] | None = {
            "level": "campaign",
            "time_range": json.dumps(
                {"since": date_range.start.isoformat(), "until": date_range.end.isoformat()}
            ),
            "fields": ",".join(INSIGHT_FIELDS),
            "limit": 500,
            "access_token": self._token_for(account),
        }
        url = f"{self._base_url}/{_account_path(account.account_id)}/insights"

        rows: list[dict[str, Any]] = []
        for _ in range(MAX_PAGES):
            payload = self._get(url, params)
            rows.extend(payload.get("data", []))
            next_url = payload.get("paging", {}).get("next")
            if not next_url:
                break
            # The next URL already carries every query parameter
            url, params = next_url, None
        else:
            logger.warning(f"Stopped paging Meta insights for {account.account_id} after {MAX_PAGES} pages")

        return rows

    def _get(self, url: str, params: dict[str, Any] | None) -> dict[str, Any]:
        """GET a Graph API URL and map failures onto the fetch error taxonomy."""
        try:
            response = self.client.get(url, params=params)
        except httpx.TransportError as e:
            raise UpstreamError(f"Meta API request failed: {e}") from e

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                raise UpstreamError(f"Meta API returned invalid JSON: {e}") from e

        error: dict[str, Any] = {}
        try:
            error = response.json().get("error", {}) or {}
        except ValueError:
            pass
        code = error.get("code")
        message = error.get("message") or response.reason_phrase

        if response.status_code == 401 or code in AUTH_ERROR_CODES:
            raise AuthError(f"Meta API rejected credentials: {message}")
        if response.status_code == 429 or code in THROTTLE_ERROR_CODES:
            raise RateLimitError(f"Meta API rate limit: {message}", retry_after=_retry_after(response))
        raise UpstreamError(f"Meta API error {response.status_code}: {message}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
