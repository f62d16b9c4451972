"""
Command-line runner for the tree aggregation pipeline.

Usage:
  sakura-watch neighborhoods
  sakura-watch streets "KITSILANO"
  sakura-watch report "KITSILANO" "W 4TH AV"
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from app.config import settings
from app.infrastructure.bloom_status_client import get_bloom_status_client
from app.infrastructure.errors import ExternalAPIError, RateLimitedError
from app.infrastructure.local_cache import get_local_cache
from app.infrastructure.open_data_client import get_open_data_client
from app.services.application.report_service import ReportService
from app.services.application.tree_aggregation_service import TreeAggregationService

logger = logging.getLogger(__name__)


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _run(args: argparse.Namespace) -> int:
    catalog = get_open_data_client()
    bloom_client = get_bloom_status_client()
    cache = get_local_cache(args.cache_path)
    if args.refresh:
        cache.clear()

    aggregation = TreeAggregationService(catalog, bloom_client, cache)
    reports = ReportService(bloom_client, cache)

    try:
        if args.command == "neighborhoods":
            overview = await aggregation.get_neighborhood_summaries()
            if overview.hit_record_limit:
                logger.warning("Record cap reached; counts may be incomplete")
            _print_json(overview.model_dump(mode="json"))
            return 0

        result = await aggregation.get_street_counts(args.neighborhood)
        if args.command == "streets":
            result.streets = reports.apply_cached_reports(result.streets)
            result.top_streets = result.streets[:aggregation.top_streets]
            _print_json(result.model_dump(mode="json", exclude={"trees"}))
            return 0

        try:
            updated = await reports.submit_report(
                args.neighborhood, args.street, result.streets, result.trees
            )
        except RateLimitedError as e:
            print(f"Too many reports. Please try again in {e.retry_after} seconds.", file=sys.stderr)
            return 2
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 1
        reported = next(s for s in updated if s.street == args.street)
        _print_json(reported.model_dump(mode="json"))
        return 0

    except ExternalAPIError as e:
        logger.error(f"Failed to load data: {e.message}")
        return 1
    finally:
        await catalog.close()
        await bloom_client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Count flowering cherry trees and their reported bloom status."
    )
    parser.add_argument(
        "--cache-path",
        default=settings.cli_cache_path,
        help="JSON file keeping results between runs (default: %(default)s)",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Drop cached results before running",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("neighborhoods", help="Tree counts and bloom status per neighborhood")

    streets = subparsers.add_parser("streets", help="Tree counts and bloom status per street")
    streets.add_argument("neighborhood", help="Neighborhood name as listed by 'neighborhoods'")

    report = subparsers.add_parser("report", help="Report a street as blooming")
    report.add_argument("neighborhood", help="Neighborhood of the street")
    report.add_argument("street", help="Street name as listed by 'streets'")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser().parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
