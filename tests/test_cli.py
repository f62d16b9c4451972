"""
Tests for the command-line pipeline runner.
"""
import json

import pytest

from app import cli
from app.domain.models import BloomStatus, BloomStatusReport
from app.infrastructure import local_cache
from app.infrastructure.errors import CatalogError, RateLimitedError
from conftest import make_catalog_record


@pytest.fixture
def wired(monkeypatch, mock_catalog, mock_bloom_client, memory_cache):
    """Point the runner's singletons at mocks."""
    monkeypatch.setattr(cli, "get_open_data_client", lambda: mock_catalog)
    monkeypatch.setattr(cli, "get_bloom_status_client", lambda: mock_bloom_client)
    monkeypatch.setattr(cli, "get_local_cache", lambda path=None: memory_cache)
    return mock_catalog, mock_bloom_client


def test_neighborhoods(wired, capsys):
    catalog, _ = wired
    catalog.fetch_genus_trees.return_value = (
        [make_catalog_record(1, "OAK ST", "SHAUGHNESSY")],
        False,
    )

    assert cli.main(["neighborhoods"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["neighborhoods"][0]["name"] == "SHAUGHNESSY"
    assert output["neighborhoods"][0]["count"] == 1
    catalog.close.assert_awaited_once()


def test_streets(wired, capsys):
    catalog, _ = wired
    catalog.fetch_neighborhood_trees.return_value = [
        make_catalog_record(1, "OAK ST", "SHAUGHNESSY"),
        make_catalog_record(2, "OAK ST", "SHAUGHNESSY"),
    ]

    assert cli.main(["streets", "SHAUGHNESSY"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["streets"] == output["top_streets"]
    assert output["streets"][0]["count"] == 2
    assert "trees" not in output


def test_report(wired, capsys):
    catalog, bloom_client = wired
    catalog.fetch_neighborhood_trees.return_value = [make_catalog_record(1, "OAK ST", "SHAUGHNESSY")]

    async def persist(report: BloomStatusReport) -> BloomStatusReport:
        return report.model_copy(update={"id": 5})

    bloom_client.update_status.side_effect = persist

    assert cli.main(["report", "SHAUGHNESSY", "OAK ST"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["bloom_status"] == BloomStatus.BLOOMING.value


def test_report_rate_limited(wired, capsys):
    catalog, bloom_client = wired
    catalog.fetch_neighborhood_trees.return_value = [make_catalog_record(1, "OAK ST", "SHAUGHNESSY")]
    bloom_client.update_status.side_effect = RateLimitedError(17)

    assert cli.main(["report", "SHAUGHNESSY", "OAK ST"]) == 2

    assert "17 seconds" in capsys.readouterr().err


def test_catalog_failure_exit_code(wired):
    catalog, bloom_client = wired
    catalog.fetch_genus_trees.side_effect = CatalogError("HTTP error! status: 500")

    assert cli.main(["neighborhoods"]) == 1
    bloom_client.close.assert_awaited_once()


def test_file_cache_reused_across_runs(monkeypatch, mock_catalog, mock_bloom_client, tmp_path, capsys):
    """A second run in a new process answers from the cache file."""
    monkeypatch.setattr(cli, "get_open_data_client", lambda: mock_catalog)
    monkeypatch.setattr(cli, "get_bloom_status_client", lambda: mock_bloom_client)
    monkeypatch.setattr(local_cache, "_local_cache", None)
    mock_catalog.fetch_genus_trees.return_value = (
        [make_catalog_record(1, "OAK ST", "SHAUGHNESSY")],
        False,
    )
    cache_file = tmp_path / "cache.json"

    assert cli.main(["--cache-path", str(cache_file), "neighborhoods"]) == 0
    capsys.readouterr()
    monkeypatch.setattr(local_cache, "_local_cache", None)
    assert cli.main(["--cache-path", str(cache_file), "neighborhoods"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["from_cache"] is True
    assert mock_catalog.fetch_genus_trees.await_count == 1

    monkeypatch.setattr(local_cache, "_local_cache", None)
    assert cli.main(["--cache-path", str(cache_file), "--refresh", "neighborhoods"]) == 0
    assert mock_catalog.fetch_genus_trees.await_count == 2


def test_default_cache_path_is_a_file():
    args = cli.build_parser().parse_args(["neighborhoods"])

    assert args.cache_path
    assert args.cache_path.endswith("cache.json")
