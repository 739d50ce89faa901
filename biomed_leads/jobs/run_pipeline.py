"""CLI job running the full collection pipeline end to end."""

import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from biomed_leads.core.config import SEARCH_SOURCE, ConfigError, Settings, get_settings
from biomed_leads.core.db import PostgresStore
from biomed_leads.core.scheduler import FetchScheduler
from biomed_leads.core.site_enricher import ContactExtractor
from biomed_leads.etl.dedupe import Deduplicator
from biomed_leads.jobs.collect import SearchCollector
from biomed_leads.jobs.directory import collect_directory
from biomed_leads.jobs.enrich import ContactEnricher
from biomed_leads.jobs.locations import import_coordinates, load_locations
from biomed_leads.vendors.serper import SerperClient

logger = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    skip_locations: bool = False
    skip_directory: bool = False
    skip_search: bool = False
    skip_enrich: bool = False
    reset_search_log: bool = False


@dataclass
class PipelineSummary:
    stages: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    establishments: int = 0
    elapsed_seconds: float = 0.0


async def run_pipeline(
    options: Optional[PipelineOptions] = None,
    *,
    settings: Optional[Settings] = None,
    store=None,
    search_client=None,
    extractor=None,
) -> PipelineSummary:
    """ensure_schema -> locations -> directory -> search -> dedupe -> enrich -> dedupe."""
    options = options or PipelineOptions()
    settings = settings or get_settings()

    # Fail on a missing credential before any network activity.
    if not options.skip_search and search_client is None:
        search_client = SerperClient(settings=settings)

    owns_store = store is None
    if owns_store:
        store = PostgresStore(settings.database_url)

    try:
        return await _run_stages(options, settings, store, search_client, extractor)
    finally:
        if search_client is not None:
            await search_client.aclose()
        if owns_store:
            store.close()


async def _run_stages(options: PipelineOptions, settings: Settings, store, search_client, extractor) -> PipelineSummary:
    summary = PipelineSummary()
    started = time.monotonic()

    store.ensure_schema()

    if options.reset_search_log:
        summary.details["search_log_reset"] = store.reset_search_log(SEARCH_SOURCE)

    if not options.skip_locations:
        summary.details["locations"] = load_locations(store, settings)
        summary.details["coordinates"] = import_coordinates(store)
        summary.stages.append("locations")

    locations = store.list_locations(settings.min_population)

    if not options.skip_directory:
        summary.details["directory"] = collect_directory(store, locations)
        summary.stages.append("directory")

    if not options.skip_search:
        scheduler = FetchScheduler(
            settings.search_concurrency,
            settings.search_delay,
            cooldown=settings.rate_limit_cooldown,
            name="search",
        )
        collector = SearchCollector(store, search_client, scheduler, settings=settings)
        summary.details["search"] = await collector.collect(locations)
        summary.stages.append("search")

    deduplicator = Deduplicator(store, settings=settings)
    summary.details["dedupe_collected"] = deduplicator.run()
    summary.stages.append("dedupe")

    if not options.skip_enrich:
        owns_extractor = extractor is None
        extractor = extractor or ContactExtractor(settings=settings)
        scheduler = FetchScheduler(
            settings.crawl_concurrency,
            settings.crawl_delay,
            cooldown=settings.rate_limit_cooldown,
            name="crawl",
        )
        try:
            summary.details["enrich"] = await ContactEnricher(store, extractor, scheduler, settings=settings).run()
        finally:
            if owns_extractor:
                await extractor.aclose()
        summary.stages.append("enrich")

        summary.details["dedupe_enriched"] = deduplicator.run()
        summary.stages.append("dedupe")

    summary.establishments = store.count_establishments()
    summary.elapsed_seconds = time.monotonic() - started
    logger.info(
        "Pipeline finished in %.1f minutes: %d establishments",
        summary.elapsed_seconds / 60,
        summary.establishments,
    )
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect, dedupe and enrich biomedicine establishments")
    parser.add_argument("--skip-locations", action="store_true", help="Reuse locations already stored")
    parser.add_argument("--skip-directory", action="store_true", help="Do not scrape the REDLARA directory")
    parser.add_argument("--skip-search", action="store_true", help="Do not issue search queries")
    parser.add_argument("--skip-enrich", action="store_true", help="Do not crawl websites for contacts")
    parser.add_argument(
        "--reset-search-log",
        action="store_true",
        help="Forget previously issued queries so every (location, keyword) is searched again",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def options_from_args(args: argparse.Namespace) -> PipelineOptions:
    return PipelineOptions(
        skip_locations=args.skip_locations,
        skip_directory=args.skip_directory,
        skip_search=args.skip_search,
        skip_enrich=args.skip_enrich,
        reset_search_log=args.reset_search_log,
    )


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    try:
        asyncio.run(run_pipeline(options_from_args(args)))
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Pipeline failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
