"""
Unit tests for bloom report submission.
"""
from datetime import datetime, timezone

import pytest

from app.domain.models import BloomStatus, BloomStatusReport, StreetSummary, TreeRecord
from app.infrastructure.errors import CacheWriteError, RateLimitedError
from app.services.application.report_service import ReportService

SAVED_AT = datetime(2025, 4, 2, 18, 21, tzinfo=timezone.utc)


@pytest.fixture
def service(mock_bloom_client, memory_cache):
    async def persist(report: BloomStatusReport) -> BloomStatusReport:
        return report.model_copy(update={"id": 1, "timestamp": SAVED_AT})

    mock_bloom_client.update_status.side_effect = persist
    return ReportService(mock_bloom_client, memory_cache)


@pytest.fixture
def streets():
    return [
        StreetSummary(street="OAK ST", count=2),
        StreetSummary(street="ASH ST", count=1),
    ]


@pytest.fixture
def trees():
    return [
        TreeRecord(tree_id="1", std_street="OAK ST", latitude=49.24, longitude=-123.14),
        TreeRecord(tree_id="2", std_street="OAK ST", latitude=49.26, longitude=-123.12),
        TreeRecord(tree_id="3", std_street="ASH ST", latitude=49.30, longitude=-123.00),
    ]


class TestSubmitReport:
    """Tests for submit_report."""

    @pytest.mark.asyncio
    async def test_report_placed_at_street_center(self, service, mock_bloom_client, streets, trees):
        await service.submit_report("SHAUGHNESSY", "OAK ST", streets, trees)

        sent = mock_bloom_client.update_status.await_args.args[0]
        assert sent.street == "OAK ST"
        assert sent.status == BloomStatus.BLOOMING
        assert sent.neighborhood == "SHAUGHNESSY"
        assert sent.reporter == "Anonymous"
        assert sent.tree_count == 2
        assert sent.latitude == pytest.approx(49.25)
        assert sent.longitude == pytest.approx(-123.13)

    @pytest.mark.asyncio
    async def test_only_reported_street_updated(self, service, streets, trees):
        updated = await service.submit_report("SHAUGHNESSY", "OAK ST", streets, trees)

        assert updated[0].bloom_status == BloomStatus.BLOOMING
        assert updated[0].user_report.timestamp == SAVED_AT
        assert updated[1].bloom_status == BloomStatus.UNKNOWN
        # Inputs are left untouched
        assert streets[0].bloom_status == BloomStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_unknown_street_rejected(self, service, mock_bloom_client, streets, trees):
        with pytest.raises(ValueError):
            await service.submit_report("SHAUGHNESSY", "ELM ST", streets, trees)

        mock_bloom_client.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_propagates_and_nothing_cached(
        self, service, mock_bloom_client, memory_cache, streets, trees
    ):
        mock_bloom_client.update_status.side_effect = RateLimitedError(30)

        with pytest.raises(RateLimitedError) as exc_info:
            await service.submit_report("SHAUGHNESSY", "OAK ST", streets, trees)

        assert exc_info.value.retry_after == 30
        assert memory_cache.get("bloom_reports") is None

    @pytest.mark.asyncio
    async def test_cached_reports_overlay(self, service, streets, trees):
        await service.submit_report("SHAUGHNESSY", "ASH ST", streets, trees)

        merged = service.apply_cached_reports(streets)

        assert merged[0].bloom_status == BloomStatus.UNKNOWN
        assert merged[1].bloom_status == BloomStatus.BLOOMING
        assert merged[1].user_report.username == "Anonymous"

    @pytest.mark.asyncio
    async def test_cache_write_failure_ignored(self, service, memory_cache, monkeypatch, streets, trees):
        def fail(key, value):
            raise CacheWriteError("quota exceeded")

        monkeypatch.setattr(memory_cache, "set", fail)

        updated = await service.submit_report("SHAUGHNESSY", "OAK ST", streets, trees)

        assert updated[0].bloom_status == BloomStatus.BLOOMING

    def test_overlay_without_cache_is_identity(self, service, streets):
        assert service.apply_cached_reports(streets) == streets


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
