"""Command line entry point for scheduled ingestion.

Meant to be invoked by cron or a systemd timer::

    astrolabe ingest apod --date 2024-06-01
    astrolabe ingest neows --start-date 2024-06-01 --end-date 2024-06-07
    astrolabe ingest mars --rover curiosity --sol 4100
    astrolabe dispatch mars
    astrolabe daily
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from datetime import date

from astrolabe.config import settings
from astrolabe.database import Base, SessionLocal, engine
from astrolabe.jobs.apod import ApodIngestionJob
from astrolabe.jobs.base import Failed
from astrolabe.jobs.dispatcher import MarsPhotoDispatcher
from astrolabe.jobs.mars_photos import MarsPhotosIngestionJob
from astrolabe.jobs.neows import NeowsIngestionJob
from astrolabe.jobs.queue import JobOutcome, JobQueue
from astrolabe.observability import configure_logging
from astrolabe.schemas.api import ROVERS
from astrolabe.services.cache import build_cache
from astrolabe.services.nasa_client import NASAClient

logger = logging.getLogger(__name__)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        message = f"{value!r} is not a YYYY-MM-DD date"
        raise argparse.ArgumentTypeError(message) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="astrolabe", description="Ingest NASA open data into the local store."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="run one ingestion job")
    resources = ingest.add_subparsers(dest="resource", required=True)

    apod = resources.add_parser("apod", help="Astronomy Picture of the Day")
    apod.add_argument("--date", type=_iso_date, help="defaults to today (UTC)")

    neows = resources.add_parser("neows", help="near-Earth object feed")
    neows.add_argument("--start-date", type=_iso_date, help="defaults to today")
    neows.add_argument(
        "--end-date",
        type=_iso_date,
        help=f"defaults to start date + {settings.neows_window_days} days",
    )

    mars = resources.add_parser("mars", help="Mars rover photos for one sol")
    mars.add_argument("--rover", required=True, type=str.lower, choices=ROVERS)
    mars.add_argument("--sol", required=True, type=int)

    dispatch = commands.add_parser("dispatch", help="fan out jobs from manifests")
    dispatch.add_argument("target", choices=["mars"])

    commands.add_parser("daily", help="apod, neows and mars dispatch in one go")
    return parser


async def run_command(
    args: argparse.Namespace, client: NASAClient
) -> list[JobOutcome]:
    queue = JobQueue()
    mars_job = MarsPhotosIngestionJob(client)

    if args.command == "ingest":
        if args.resource == "apod":
            queue.enqueue(ApodIngestionJob(client), day=args.date)
        elif args.resource == "neows":
            queue.enqueue(
                NeowsIngestionJob(client),
                start_date=args.start_date,
                end_date=args.end_date,
            )
        else:
            queue.enqueue(mars_job, rover=args.rover, sol=args.sol)
    elif args.command == "dispatch":
        await MarsPhotoDispatcher(client, queue, mars_job).dispatch_all()
    else:
        queue.enqueue(ApodIngestionJob(client))
        queue.enqueue(NeowsIngestionJob(client))
        await MarsPhotoDispatcher(client, queue, mars_job).dispatch_all()

    return await queue.drain()


async def _main(args: argparse.Namespace) -> int:
    cache = build_cache(settings.cache_backend, SessionLocal)
    async with NASAClient(cache) as client:
        outcomes = await run_command(args, client)

    failed = [
        outcome
        for outcome in outcomes
        if outcome.result is None or isinstance(outcome.result, Failed)
    ]
    logger.info(
        "Run finished: %d job(s), %d failed", len(outcomes), len(failed)
    )
    return 1 if failed else 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level.upper())
    if settings.enable_tracing and settings.otlp_endpoint:
        from astrolabe.observability.tracing import configure_tracing

        configure_tracing(
            "astrolabe-jobs",
            settings.otlp_endpoint,
            settings.otlp_headers,
            engine=engine,
        )
    Base.metadata.create_all(bind=engine)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
