#!/usr/bin/env python3
"""CLI entry point for the Aversi scraper."""

import asyncio
import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import CrawlSettings
from .errors import SetupFailure
from .export import build_statistics
from .models import CrawlResult, DirectLookup
from .service import CrawlService
from .targets import TargetEnumerator


def print_result(result: CrawlResult) -> None:
    """Print crawl result summary."""
    stats = build_statistics(result)
    print(f"\nExtracted {stats['totalProducts']} products in {stats['duration']} minutes:")
    for i, r in enumerate(result.records[:5], 1):
        print(f"  {i}. {r.title} - {r.price}")
    if len(result.records) > 5:
        print(f"  ... and {len(result.records) - 5} more")
    print(f"  Medications: {stats['medicationProducts']}, care products: {stats['careProducts']}")
    print(f"  Listing pages scraped: {stats['pagesScraped']}")
    if result.failures:
        print(f"  Failed targets: {len(result.failures)}")
        for failure in result.failures[:10]:
            print(f"    - {failure.target.describe()} ({failure.kind.value})")


async def list_targets(settings: CrawlSettings) -> None:
    """Print the static work list without launching a browser."""
    enumerator = TargetEnumerator(include_direct_lookups=settings.include_direct_lookups)
    targets = await enumerator.enumerate()
    lookups = [t for t in targets if isinstance(t, DirectLookup)]
    print(f"Direct lookups: {len(lookups)}")
    for target in lookups:
        print(f"  - {target.describe()}")
    print(f"Categories: {len(enumerator.resolved_categories)}")
    for config in enumerator.resolved_categories:
        print(f"  - {config.url} (pages {config.start_page}-{config.end_page}, {config.page_size}/page)")


async def run_crawl(settings: CrawlSettings) -> CrawlResult | None:
    service = CrawlService(settings)
    service.scratch.clear()
    try:
        result = await service.run()
    except (KeyboardInterrupt, asyncio.CancelledError):
        await service.stop()
        raise
    print(f"\n{service.status.message}")
    return result


def run_serve(host: str, port: int, settings: CrawlSettings) -> int:
    """Run the web service in the foreground with the given crawl settings."""
    import uvicorn

    from .webapp.app import create_app

    print("=" * 60)
    print(f"Starting webserver on {host}:{port}")
    print("Press Ctrl+C to stop")
    print("=" * 60)
    uvicorn.run(create_app(settings=settings), host=host, port=port)
    return 0


def build_settings(args: argparse.Namespace) -> CrawlSettings:
    settings = CrawlSettings.from_env()
    overrides: dict[str, object] = {}
    if args.no_discovery:
        overrides["discover_categories"] = False
    if args.no_direct:
        overrides["include_direct_lookups"] = False
    if args.headful:
        overrides["headless"] = False
    if args.output_dir:
        overrides["output_dir"] = Path(args.output_dir)
    if args.delay_ms is not None:
        overrides["request_delay_ms"] = args.delay_ms
    if args.retries is not None:
        overrides["fetch_retries"] = args.retries
    return replace(settings, **overrides) if overrides else settings


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Aversi pharmacy product scraper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m aversi_scraper.cli --run                 # Crawl everything, write output/data
  python -m aversi_scraper.cli --run --no-direct     # Category listings only
  python -m aversi_scraper.cli --list-targets        # Show the static work list
  python -m aversi_scraper.cli --serve --port 3000   # Run the HTTP service
        """,
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--run", "-r", action="store_true", help="Run a full crawl and wait for it")
    group.add_argument("--list-targets", "-l", action="store_true", help="List direct lookups and static categories")
    group.add_argument("--serve", action="store_true", help="Run the HTTP service")

    parser.add_argument("--no-discovery", action="store_true", help="Skip scraping the category menu")
    parser.add_argument("--no-direct", action="store_true", help="Skip MatID direct lookups")
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--output-dir", help="Directory for data, debug and scratch files")
    parser.add_argument("--delay-ms", type=int, help="Pause between requests in milliseconds")
    parser.add_argument("--retries", type=int, help="Retries for timeouts and network errors")
    parser.add_argument("--host", default="0.0.0.0", help="Host for --serve")
    parser.add_argument("--port", type=int, default=3000, help="Port for --serve")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = build_settings(args)

    if args.serve:
        return run_serve(args.host, args.port, settings)

    if args.list_targets:
        asyncio.run(list_targets(settings))
        return 0

    try:
        result = asyncio.run(run_crawl(settings))
    except SetupFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    if result is None:
        return 1
    print_result(result)

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
