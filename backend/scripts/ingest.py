#!/usr/bin/env python3
"""
CLI tool for news ingestion.

Usage:
    # Ingest one category through every configured source
    python -m scripts.ingest ingest --category technology --limit 30

    # Purge articles older than 48h and refill
    python -m scripts.ingest purge --max-age-hours 48

    # Wipe everything and refill
    python -m scripts.ingest purge --wipe-all

    # Show the latest fetch log entries
    python -m scripts.ingest logs --limit 20

    # Run the API server with the auto-refresh scheduler
    python -m scripts.ingest serve --port 8000
"""

import argparse
import asyncio
import json
import sys

from newsroom.config import get_settings
from newsroom.core.categories import CATEGORIES
from newsroom.core.logging import configure_logging
from newsroom.jobs.refresh import NewsRefreshJob
from newsroom.models.database import Database


def create_job() -> NewsRefreshJob:
    """Create the refresh job from environment config."""
    settings = get_settings()
    return NewsRefreshJob(Database(settings.database_url), settings=settings)


async def _with_job(action):
    job = create_job()
    await job.initialize()
    try:
        return await action(job)
    finally:
        await job.close()
        await job.database.dispose()


def print_logs(entries):
    for entry in entries:
        line = (
            f"  [{entry.status.value:7}] {entry.source_name:<10} {entry.category:<13} "
            f"fetched={entry.articles_fetched:<4} stored={entry.articles_stored:<4} "
            f"{entry.execution_time_ms}ms"
        )
        if entry.error_message:
            line += f"  ({entry.error_message})"
        print(line)


async def cmd_ingest(args):
    """Ingest one category."""
    print(f"Ingesting category: {args.category}")
    result = await _with_job(lambda job: job.ingest(args.category, args.limit, args.force))

    if args.json:
        print(result.model_dump_json(indent=2))
        return 0 if result.success else 1

    print("\n" + "=" * 60)
    print("INGESTION RESULTS")
    print("=" * 60)
    print_logs(result.logs)
    print("-" * 60)
    print(f"Fetched: {result.total_fetched}  Stored: {result.total_stored}  ({result.duration_ms}ms)")
    if result.error:
        print(f"Error: {result.error}")

    return 0 if result.success else 1


async def cmd_purge(args):
    """Purge and refresh the store."""
    what = "all articles" if args.wipe_all else f"articles older than {args.max_age_hours}h"
    print(f"Purging {what} and refreshing...")
    result = await _with_job(lambda job: job.purge_and_refresh(args.max_age_hours, args.wipe_all))

    if args.json:
        print(result.model_dump_json(indent=2))
        return 0 if result.success else 1

    print("\n" + "=" * 50)
    print("PURGE AND REFRESH")
    print("=" * 50)
    if not result.success:
        print(f"FAILED: {result.error}")
        return 1

    print(f"Removed:            {result.removed}")
    print(f"Articles added:     {result.articles_added}")
    for name, count in result.per_pipeline_breakdown.items():
        print(f"  {name:<18}{count}")
    print(f"Duplicates cleaned: {result.duplicates_cleaned}")
    print(f"Freshness updated:  {result.freshness_updated}")
    print(f"Duration:           {result.duration_ms}ms")
    for warning in result.warnings:
        print(f"Warning: {warning}")

    return 0


async def cmd_logs(args):
    """Show recent fetch log entries."""
    entries = await _with_job(lambda job: job.recent_logs(args.limit))

    if args.json:
        print(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return 0

    print(f"Last {len(entries)} fetch log entries:")
    print_logs(entries)
    return 0


def cmd_serve(args):
    """Run the API server (includes the auto-refresh scheduler)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "newsroom.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Newsroom - News Ingestion CLI"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Ingest one category")
    ingest_parser.add_argument(
        "--category", "-c",
        choices=CATEGORIES,
        default="general",
        help="Category to ingest (default: general)"
    )
    ingest_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=None,
        help="Target number of stored articles"
    )
    ingest_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Re-upsert articles that are already stored"
    )

    # Purge command
    purge_parser = subparsers.add_parser("purge", help="Purge old articles and refresh")
    purge_parser.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Delete articles published earlier than this (default: 48)"
    )
    purge_parser.add_argument(
        "--wipe-all",
        action="store_true",
        help="Delete every article before refreshing"
    )

    # Logs command
    logs_parser = subparsers.add_parser("logs", help="Show recent fetch logs")
    logs_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=20,
        help="Number of entries (default: 20)"
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", "-p", type=int, default=None)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(settings.log_level, json=False)

    # Run command
    if args.command == "ingest":
        return asyncio.run(cmd_ingest(args))
    elif args.command == "purge":
        return asyncio.run(cmd_purge(args))
    elif args.command == "logs":
        return asyncio.run(cmd_logs(args))
    elif args.command == "serve":
        return cmd_serve(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
