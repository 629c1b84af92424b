"""Tests for adledger.connectors.base."""

from __future__ import annotations

from abc import ABC

import pytest
from adledger.connectors.base import BaseFetcher
from adledger.connectors.config import Platform, PlatformAccount
from adledger.connectors.exceptions import AuthError, UpstreamError
from adledger.conversions import CampaignRecord


class TestSubclassValidation:
    """Tests for __init_subclass__ platform validation."""

    def test_missing_platform_raises(self) -> None:
        with pytest.raises(TypeError, match="platform"):

            class NoPlatform(BaseFetcher):
                def fetch_raw(self, account, date_range):
                    return []

    def test_abstract_subclass_skips_validation(self) -> None:
        class Intermediate(BaseFetcher, ABC):
            pass

        assert Intermediate.__name__ == "Intermediate"


class TestFetch:
    """Tests for BaseFetcher.fetch."""

    def test_returns_campaign_records(self, mock_fetcher, meta_account, october) -> None:
        records = mock_fetcher.fetch(meta_account, october)

        assert len(records) == 1
        assert isinstance(records[0], CampaignRecord)
        assert records[0].spend == 100.0
        assert mock_fetcher.calls == [(meta_account, october)]

    def test_rows_without_id_skipped(self, make_fetcher, meta_account, october) -> None:
        fetcher = make_fetcher(rows=[{"campaign_name": "no id"}, {"campaign_id": "2"}])

        records = fetcher.fetch(meta_account, october)

        assert [r.campaign_id for r in records] == ["2"]

    def test_taxonomy_errors_propagate(self, make_fetcher, meta_account, october) -> None:
        fetcher = make_fetcher(error=AuthError("expired"))

        with pytest.raises(AuthError):
            fetcher.fetch(meta_account, october)

    def test_unexpected_errors_become_upstream(self, make_fetcher, meta_account, october) -> None:
        fetcher = make_fetcher(error=KeyError("data"))

        with pytest.raises(UpstreamError) as exc_info:
            fetcher.fetch(meta_account, october)

        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_wrong_platform_account_rejected(self, mock_fetcher, october) -> None:
        account = PlatformAccount(Platform.GOOGLE_ADS, "123-456-7890")

        with pytest.raises(ValueError, match="google_ads"):
            mock_fetcher.fetch(account, october)
