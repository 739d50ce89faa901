"""Search collection: one query per (location, keyword), logged for idempotent re-runs."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from biomed_leads.core.config import KEYWORDS, SEARCH_SOURCE, Settings, get_settings
from biomed_leads.core.models import Accept, Location, RejectedResult
from biomed_leads.core.scheduler import FetchScheduler
from biomed_leads.etl.relevance import RelevanceClassifier
from biomed_leads.etl.transform import to_establishment
from biomed_leads.vendors.serper import SearchApiError, SearchRateLimitedError

logger = logging.getLogger(__name__)


@dataclass
class CollectStats:
    queries: int = 0
    skipped: int = 0
    failed: int = 0
    rate_limited: int = 0
    results: int = 0
    accepted: int = 0
    rejected: int = 0
    inserted: int = 0


def build_query(keyword: str, location: Location) -> str:
    return f"{keyword} {location.name} {location.region}"


class SearchCollector:
    """Drive the search API over locations x keywords.

    Locations are processed largest first; within a location every pending
    keyword is dispatched through the scheduler and awaited together before
    the next location starts.

    Store calls are synchronous and run on the event loop thread, so each one
    blocks other in-flight queries for its duration.
    """

    def __init__(
        self,
        store,
        client,
        scheduler: FetchScheduler,
        *,
        classifier: Optional[RelevanceClassifier] = None,
        keywords: Sequence[str] = KEYWORDS,
        settings: Optional[Settings] = None,
        source: str = SEARCH_SOURCE,
    ) -> None:
        settings = settings or get_settings()
        self.store = store
        self.client = client
        self.scheduler = scheduler
        self.classifier = classifier or RelevanceClassifier(settings.filters)
        self.keywords = tuple(keywords)
        self.source = source
        self.log_rejected = settings.log_rejected
        self.min_population = settings.min_population
        self.stats = CollectStats()

    async def collect(self, locations: Optional[Iterable[Location]] = None) -> CollectStats:
        if locations is None:
            locations = self.store.list_locations(self.min_population)
        ordered = sorted(locations, key=lambda location: location.population, reverse=True)
        self.stats = CollectStats()

        logger.info(
            "Starting searches: %d locations x %d keywords (up to %d queries)",
            len(ordered),
            len(self.keywords),
            len(ordered) * len(self.keywords),
        )

        for location in ordered:
            pending = []
            for keyword in self.keywords:
                if self.store.has_search_log(location.id, keyword, self.source):
                    self.stats.skipped += 1
                    continue
                pending.append(keyword)
            if not pending:
                continue

            await self.scheduler.run_all(
                [self._make_task(location, keyword) for keyword in pending]
            )
            logger.info(
                "%s/%s done: queries=%d results=%d inserted=%d",
                location.name,
                location.region,
                self.stats.queries,
                self.stats.results,
                self.stats.inserted,
            )

        logger.info(
            "Search collection finished: %d queries, %d skipped, %d failed, %d rate limited, %d inserted",
            self.stats.queries,
            self.stats.skipped,
            self.stats.failed,
            self.stats.rate_limited,
            self.stats.inserted,
        )
        return self.stats

    def _make_task(self, location: Location, keyword: str):
        async def task() -> None:
            await self._search_one(location, keyword)

        return task

    async def _search_one(self, location: Location, keyword: str) -> None:
        query = build_query(keyword, location)
        try:
            results = await self.client.search(query)
        except SearchRateLimitedError as exc:
            self.stats.rate_limited += 1
            self.scheduler.trigger_cooldown()
            logger.warning("Rate limit hit for %r, will retry on a later run: %s", query, exc)
            return
        except SearchApiError as exc:
            self.stats.failed += 1
            logger.error("Search failed for %r: %s", query, exc)
            return

        self.store.log_search(location.id, keyword, self.source, len(results))
        self.stats.queries += 1
        self.stats.results += len(results)

        for result in results:
            outcome = self.classifier.classify(result)
            if not isinstance(outcome, Accept):
                self.stats.rejected += 1
                if self.log_rejected:
                    self.store.log_rejected(
                        RejectedResult(
                            location_id=location.id,
                            keyword=keyword,
                            title=result.title,
                            link=result.link,
                            reason=outcome.reason,
                        )
                    )
                continue

            self.stats.accepted += 1
            establishment = to_establishment(result, location, outcome.category, self.source)
            if self.store.insert_establishment(establishment) is not None:
                self.stats.inserted += 1
