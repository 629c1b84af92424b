"""Shared pytest fixtures for AdLedger packages."""

from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def mock_bigquery_client():
    """Mock google.cloud.bigquery.Client for testing."""
    with patch("google.cloud.bigquery.Client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def sample_client_data():
    """Sample client with one account per platform."""
    return {
        "client_id": "hotel_1",
        "name": "Hotel One",
        "meta_account_id": "act_12345",
        "google_ads_customer_id": "123-456-7890",
        "custom_conversions": {"click_to_call": ["offsite_conversion.custom.1234"]},
    }


@pytest.fixture
def sample_meta_rows():
    """Meta insights rows, as returned by the Graph API (numeric strings)."""
    return [
        {
            "campaign_id": "238001",
            "campaign_name": "Prospecting - Lookalike",
            "spend": "600.00",
            "impressions": "42000",
            "clicks": "840",
            "actions": [
                {"action_type": "link_click", "value": "840"},
                {"action_type": "omni_search", "value": "120"},
                {"action_type": "omni_initiated_checkout", "value": "30"},
                {"action_type": "omni_purchase", "value": "6"},
                {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "6"},
                {"action_type": "offsite_conversion.custom.1234", "value": "4"},
            ],
            "action_values": [
                {"action_type": "omni_purchase", "value": "3000.00"},
                {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "3000.00"},
            ],
        },
        {
            "campaign_id": "238002",
            "campaign_name": "Retargeting",
            "spend": "400.00",
            "impressions": "18000",
            "clicks": "540",
            "actions": [{"action_type": "omni_purchase", "value": "4"}],
            "action_values": [{"action_type": "omni_purchase", "value": "2000.00"}],
        },
    ]


@pytest.fixture
def sample_google_ads_rows():
    """Google Ads campaign rows with named conversion actions."""
    return [
        {
            "campaign_id": "9001",
            "campaign_name": "Search - Brand",
            "spend": 500.0,
            "impressions": 10000,
            "clicks": 700,
            "conversions": [
                {"conversion_name": "Rezerwacja", "conversions": 5, "conversion_value": 2000.0},
                {"conversion_name": "Telefon", "conversions": 12, "conversion_value": 0},
            ],
        }
    ]
