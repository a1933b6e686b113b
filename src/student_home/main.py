"""Entry point for the StudentHome batch jobs."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from student_home.config import Settings
from student_home.db import PropertyStore, create_store
from student_home.errors import ConfigurationError
from student_home.images import ImageUrlResolver, LivenessChecker
from student_home.logging import bind_job_context, configure_logging, get_logger
from student_home.models import CleanupPolicy
from student_home.pipeline import (
    CleanupReport,
    CleanupService,
    DiagnosticReport,
    ImportPipeline,
    ImportStats,
    discover_worklist,
    load_seed,
    run_diagnostics,
)
from student_home.scrapers import ListingExtractor, Provider, create_fetcher, get_provider

logger = get_logger(__name__)


def _checker(settings: Settings) -> LivenessChecker:
    return LivenessChecker(
        timeout=settings.liveness_timeout_seconds,
        batch_size=settings.liveness_batch_size,
        batch_delay=settings.liveness_batch_delay_seconds,
    )


async def run_import(
    settings: Settings,
    store: PropertyStore,
    provider: Provider,
    *,
    from_file: Path | None = None,
    clear_first: bool = False,
) -> ImportStats:
    """Import listings from a dataset file or a live crawl."""
    checker = _checker(settings)
    fetcher = (
        create_fetcher(settings.fetcher, timeout=settings.page_timeout_seconds)
        if from_file is None
        else None
    )
    await store.initialize()
    try:
        if clear_first:
            await store.clear_all()

        pipeline = ImportPipeline(
            store=store,
            extractor=ListingExtractor(provider),
            resolver=ImageUrlResolver(provider),
            checker=checker,
            fetcher=fetcher,
            request_delay=settings.request_delay_seconds,
            image_probe_limit=settings.image_probe_limit,
        )
        if from_file is not None:
            return await pipeline.import_file(from_file)

        assert fetcher is not None
        worklist = await discover_worklist(
            fetcher,
            index_url=settings.discovery_index_url,
            seed=load_seed(settings.seed_path),
            seed_base_url=settings.seed_base_url,
            max_pages=settings.max_pages,
        )
        return await pipeline.run(worklist)
    finally:
        if fetcher is not None:
            await fetcher.close()
        await checker.close()
        await store.close()


async def run_cleanup(
    settings: Settings, store: PropertyStore, provider: Provider, policy: CleanupPolicy
) -> CleanupReport:
    """Sweep stored images and apply the cleanup policy."""
    checker = _checker(settings)
    await store.initialize()
    try:
        service = CleanupService(
            store=store, checker=checker, resolver=ImageUrlResolver(provider)
        )
        return await service.run(policy)
    finally:
        await checker.close()
        await store.close()


async def run_diagnose(settings: Settings, store: PropertyStore, sample: int) -> DiagnosticReport:
    """Report store health without writing anything."""
    checker = _checker(settings)
    await store.initialize()
    try:
        return await run_diagnostics(store, checker, sample_size=sample)
    finally:
        await checker.close()
        await store.close()


def print_import_summary(stats: ImportStats) -> None:
    print(f"\n{'=' * 60}")
    print("Import complete")
    print(f"{'=' * 60}")
    print(f"  Pages processed: {stats.pages_processed} ({stats.pages_failed} failed)")
    print(f"  Listings found:  {stats.listings_found}")
    print(f"  Imported:        {stats.imported}")
    print(f"  Skipped:         {stats.skipped}")
    print(f"  Failed:          {stats.failed}")
    print(f"  Images saved:    {stats.images_saved}")


def print_cleanup_summary(report: CleanupReport) -> None:
    print(f"\n{'=' * 60}")
    print(f"Cleanup complete ({report.policy.value})")
    print(f"{'=' * 60}")
    print(f"  Images checked:     {report.checked}")
    print(f"  Working / broken:   {report.working} / {report.broken}")
    if report.policy is CleanupPolicy.FIX_URLS_ONLY:
        print(f"  URLs repaired:      {report.updated}")
    else:
        print(f"  Images deleted:     {report.images_deleted}")
        print(f"  Properties deleted: {report.properties_deleted}")
        if report.orphans_deleted:
            print(f"  Orphans deleted:    {report.orphans_deleted}")
    print(f"  Failed:             {report.failed}")


def print_diagnostics(report: DiagnosticReport) -> None:
    print(f"\n{'=' * 60}")
    print("Database status")
    print(f"{'=' * 60}")
    print(f"  Properties:           {report.property_count}")
    print(f"  Images:               {report.image_count}")
    print(f"  Properties w/ images: {report.properties_with_images}")
    print(f"  Image coverage:       {report.image_coverage:.1f}%")

    if report.sample_properties:
        print("\nSample properties:")
        for prop in report.sample_properties:
            print(f"  [{prop.source}] {prop.title}")
            print(
                f"    £{prop.price:,.0f} {prop.price_type.value} | {prop.location} "
                f"| Beds: {prop.bedrooms}"
            )

    print(f"\nBroken URLs in sample: {len(report.broken_urls)}/{report.sampled_image_urls}")
    for url in report.broken_urls:
        print(f"  {url}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="student-home",
        description="StudentHome - UK student accommodation ingestion and cleanup jobs",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines instead of console output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Crawl or load listings into the store")
    import_parser.add_argument(
        "--from-file",
        type=Path,
        default=None,
        help="Import a JSON dataset instead of crawling",
    )
    import_parser.add_argument(
        "--clear-first",
        action="store_true",
        help="Delete all properties and images before importing",
    )
    import_parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Limit the crawl worklist (for faster dev/test runs)",
    )

    cleanup_parser = subparsers.add_parser("cleanup", help="Remove or repair broken images")
    cleanup_parser.add_argument(
        "--policy",
        type=CleanupPolicy,
        choices=list(CleanupPolicy),
        default=CleanupPolicy.DELETE_IMAGELESS_PROPERTIES,
        metavar="{" + ",".join(p.value for p in CleanupPolicy) + "}",
        help="Cleanup policy (default: delete_imageless_properties)",
    )

    diagnose_parser = subparsers.add_parser("diagnose", help="Report store health (read-only)")
    diagnose_parser.add_argument(
        "--sample",
        type=int,
        default=5,
        help="Number of sample properties and image URLs to report",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(
        json_output=args.json_logs,
        level=logging.DEBUG if args.debug else logging.INFO,
    )
    bind_job_context(args.command)

    try:
        settings = Settings()
        if args.command == "import" and args.max_pages is not None:
            settings = settings.model_copy(update={"max_pages": args.max_pages})
        provider = get_provider(settings.provider)
        store = create_store(settings, elevated=args.command != "diagnose")
    except (ValidationError, ConfigurationError) as e:
        logger.error("failed_to_load_settings", error=str(e))
        print(f"Error: Failed to load settings. {e}")
        print("Make sure you have a .env file with required settings.")
        print("Required: STUDENT_HOME_DATABASE_URL and STUDENT_HOME_SERVICE_KEY")
        print("Diagnostics accept STUDENT_HOME_ANON_KEY instead of the service key.")
        sys.exit(1)

    logger.info("job_started", provider=provider.name, sqlite=settings.is_sqlite)

    if args.command == "import":
        stats = asyncio.run(
            run_import(
                settings,
                store,
                provider,
                from_file=args.from_file,
                clear_first=args.clear_first,
            )
        )
        print_import_summary(stats)
    elif args.command == "cleanup":
        print_cleanup_summary(asyncio.run(run_cleanup(settings, store, provider, args.policy)))
    else:
        print_diagnostics(asyncio.run(run_diagnose(settings, store, args.sample)))


if __name__ == "__main__":
    main()
