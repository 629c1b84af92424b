"""Tests for ReportService."""

from datetime import date

import pytest
from adledger.cache import DataUnavailableError, UnknownClientError
from adledger.connectors import AuthError, DateRange, Platform, UpstreamError
from adledger.reporting import ReportRequest

OCTOBER = DateRange(date(2026, 10, 1), date(2026, 10, 31))
SEPTEMBER = {"start": "2026-09-01", "end": "2026-09-30"}


def _request(client_id="hotel_1", platform=None, date_range=OCTOBER, force_fresh=False):
    return ReportRequest(client_id=client_id, date_range=date_range, platform=platform, force_fresh=force_fresh)


class TestAllPlatforms:
    def test_unified_totals(self, service):
        response = service.get_report(_request())

        assert response.totals.spend == 1500.0
        assert response.conversion_metrics.reservation_value == 7000.0
        assert response.conversion_metrics.roas == pytest.approx(7000 / 1500)
        assert response.conversion_metrics.reservations == 15
        assert response.platforms == [Platform.META, Platform.GOOGLE_ADS]
        assert [(c.platform, c.campaign_id) for c in response.per_campaign] == [
            (Platform.GOOGLE_ADS, "g1"),
            (Platform.META, "m1"),
        ]
        assert response.data_source == "live"
        assert not response.partial

    def test_one_platform_failing_is_partial(self, service, google_fetcher):
        google_fetcher.error = AuthError("Invalid developer token")

        response = service.get_report(_request())

        assert response.partial
        assert response.totals.spend == 1000.0
        assert response.conversion_metrics.roas == 5.0
        assert response.platforms == [Platform.META]
        assert len(response.errors) == 1
        assert response.errors[0].startswith("google_ads: Data temporarily unavailable")

    def test_every_platform_failing_raises(self, service, meta_fetcher, google_fetcher):
        meta_fetcher.error = UpstreamError("500")
        google_fetcher.error = UpstreamError("500")

        with pytest.raises(DataUnavailableError):
            service.get_report(_request())

    def test_only_enabled_platforms(self, service, google_fetcher):
        response = service.get_report(_request(client_id="hotel_2"))

        assert response.platforms == [Platform.META]
        assert google_fetcher.calls == []

    def test_unknown_client(self, service):
        with pytest.raises(UnknownClientError):
            service.get_report(_request(client_id="nobody"))


class TestSinglePlatform:
    def test_meta_only(self, service, google_fetcher):
        response = service.get_report(_request(platform=Platform.META))

        assert response.totals.spend == 1000.0
        assert response.platform is Platform.META
        assert google_fetcher.calls == []

    def test_failure_propagates(self, service, google_fetcher):
        google_fetcher.error = UpstreamError("503")

        with pytest.raises(DataUnavailableError):
            service.get_report(_request(platform=Platform.GOOGLE_ADS))


class TestHandle:
    def test_payload_round_trip(self, service):
        data = service.handle(
            {"clientId": "hotel_1", "platform": "all", "dateRange": {"start": "2026-10-01", "end": "2026-10-31"}}
        )

        assert data["clientId"] == "hotel_1"
        assert data["totals"]["spend"] == 1500.0
        assert data["conversionMetrics"]["reservations"] == 15
        assert [c["campaign_id"] for c in data["perCampaign"]] == ["g1", "m1"]
        assert data["dataSource"] == "live"
        assert data["cacheAge"] == 0

    def test_closed_period_backfilled_then_historical(self, service, meta_fetcher):
        payload = {"clientId": "hotel_2", "dateRange": SEPTEMBER}

        first = service.handle(payload)
        second = service.handle(payload)

        assert first["dataSource"] == "backfill"
        assert second["dataSource"] == "historical"
        assert second["cacheAge"] is None
        assert len(meta_fetcher.calls) == 1

    def test_force_fresh_refetches(self, service, meta_fetcher):
        payload = {"clientId": "hotel_2", "dateRange": {"start": "2026-10-01", "end": "2026-10-31"}}
        service.handle(payload)

        cached = service.handle(payload)
        forced = service.handle({**payload, "forceFresh": True})

        assert cached["dataSource"] == "cache"
        assert forced["dataSource"] == "live"
        assert len(meta_fetcher.calls) == 2


@pytest.mark.asyncio
async def test_get_report_async(service):
    response = await service.get_report_async(_request())

    assert response.totals.spend == 1500.0
    assert not response.partial


@pytest.mark.asyncio
async def test_get_report_async_partial(service, google_fetcher):
    google_fetcher.error = UpstreamError("502")

    response = await service.get_report_async(_request())

    assert response.partial
    assert response.platforms == [Platform.META]
