from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

from coinscraper.config import ScraperConfig, load_config
from coinscraper.logging_utils import configure_logging
from coinscraper.profiles import (
    SourceProfileRegistry,
    fetch_profiles_from_rest,
    load_profiles_from_file,
)
from coinscraper.reporter import (
    JsonlPerformanceSink,
    PerformanceReporter,
    PerformanceSink,
    RestPerformanceSink,
)
from coinscraper.service import CoinScraper


def _build_registry(config: ScraperConfig) -> SourceProfileRegistry:
    if config.profiles_rest_url:
        return fetch_profiles_from_rest(
            config.profiles_rest_url,
            api_key=config.api_key,
            timeout=config.request_timeout_seconds,
        )
    if config.profiles_path:
        return load_profiles_from_file(config.profiles_path)
    return SourceProfileRegistry()


def _build_sink(config: ScraperConfig) -> PerformanceSink:
    if config.performance_rest_url:
        return RestPerformanceSink(config.performance_rest_url, api_key=config.api_key)
    return JsonlPerformanceSink(config.performance_log_path or "source_performance.jsonl")


def _load_payloads(path: str) -> List[Any]:
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    return payload if isinstance(payload, list) else [payload]


def _payload_from_args(args: argparse.Namespace) -> dict:
    payload: dict = {
        "targetUrl": args.url,
        "coinQuery": {
            "country": args.country,
            "year": args.year,
            "denomination": args.denomination,
            "name": args.name,
            "text": args.text,
        },
    }
    if args.max_retries is not None:
        payload["maxRetries"] = args.max_retries
    if args.search_type:
        payload["searchType"] = args.search_type
    return payload


async def run(config: ScraperConfig, payloads: List[Any]) -> int:
    registry = _build_registry(config)
    reporter = PerformanceReporter(_build_sink(config))
    scraper = CoinScraper(config=config, registry=registry, reporter=reporter)
    try:
        responses = await scraper.scrape_many(payloads)
    finally:
        reporter.close()

    failures = 0
    for response in responses:
        print(json.dumps({"status": response.status_code, **response.body}, ensure_ascii=False))
        if response.status_code != 200:
            failures += 1
    return 1 if failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Scrape coin prices from a target site")
    parser.add_argument("--url", help="Target site base URL (e.g. https://www.heritage.com/search)")
    parser.add_argument("--country", default="", help="Coin country")
    parser.add_argument("--year", type=int, default=None, help="Coin year")
    parser.add_argument("--denomination", default="", help="Coin denomination")
    parser.add_argument("--name", default="", help="Coin name")
    parser.add_argument("--text", default="", help="Free-text fallback query")
    parser.add_argument("--max-retries", type=int, default=None, help="Attempt budget per scrape")
    parser.add_argument("--search-type", default=None, help="Informational search type label")
    parser.add_argument("--requests", help="JSON file with one request object or a list of them")

    parser.add_argument("--profiles", default=None, help="JSON file with source profiles")
    parser.add_argument("--performance-log", default=None, help="JSONL file for performance observations")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--concurrency", type=int, default=None, help="Max concurrent scrapes")
    parser.add_argument("--log-level", default=None, help="Logging level")

    args = parser.parse_args(argv)

    config = load_config().with_overrides(
        profiles_path=args.profiles,
        performance_log_path=args.performance_log,
        request_timeout_seconds=args.timeout,
        max_concurrency=args.concurrency,
        log_level=args.log_level,
    )
    configure_logging(config.log_level)

    if args.requests:
        payloads = _load_payloads(args.requests)
    elif args.url:
        payloads = [_payload_from_args(args)]
    else:
        parser.print_usage(sys.stderr)
        print("Nothing to do. Use --url or --requests.", file=sys.stderr)
        return 2

    return asyncio.run(run(config, payloads))


if __name__ == "__main__":
    sys.exit(main())
