"""Tests for adledger.reporting package exports."""


class TestPackageExports:
    """Test that all expected names are exported from the package."""

    def test_all_contains_exports(self):
        import adledger.reporting

        expected = [
            "ALL_PLATFORMS",
            "InvalidReportRequestError",
            "ReportRequest",
            "ReportResponse",
            "ReportService",
        ]
        assert set(adledger.reporting.__all__) == set(expected)

    def test_import_all_together(self):
        from adledger.reporting import ALL_PLATFORMS, ReportRequest, ReportResponse, ReportService

        assert ALL_PLATFORMS == "all"
        assert ReportRequest is not None
        assert ReportResponse is not None
        assert ReportService is not None
