"""Contact enrichment for establishments that have a website but no contacts yet."""

import gc
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from biomed_leads.core.config import CONTACT_CAPS, Settings, get_settings
from biomed_leads.core.models import Establishment, ExtractedContacts
from biomed_leads.core.scheduler import FetchScheduler

logger = logging.getLogger(__name__)


@dataclass
class EnrichStats:
    processed: int = 0
    with_contacts: int = 0
    contacts_inserted: int = 0


def capped_contacts(contacts: ExtractedContacts, caps: Dict[str, int] = CONTACT_CAPS) -> Dict[str, List[str]]:
    """Trim each contact type to its persistence cap, keeping page order."""
    return {
        contact_type: values[: caps.get(contact_type, 2)]
        for contact_type, values in contacts.by_type().items()
        if values
    }


class ContactEnricher:
    """Crawl establishment websites in fixed-size batches and persist capped contacts.

    Persistence goes through the synchronous store on the event loop thread.
    """

    def __init__(
        self,
        store,
        extractor,
        scheduler: FetchScheduler,
        *,
        settings: Optional[Settings] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        settings = settings or get_settings()
        self.store = store
        self.extractor = extractor
        self.scheduler = scheduler
        self.batch_size = batch_size or settings.crawl_batch_size
        self.stats = EnrichStats()

    async def run(self) -> EnrichStats:
        self.stats = EnrichStats()
        establishments = self.store.establishments_without_contacts()
        logger.info("Enriching %d websites", len(establishments))

        for start in range(0, len(establishments), self.batch_size):
            batch = establishments[start : start + self.batch_size]
            await self.scheduler.run_all([self._make_task(establishment) for establishment in batch])
            logger.info(
                "Enrichment progress: %d/%d processed, %d with contacts",
                self.stats.processed,
                len(establishments),
                self.stats.with_contacts,
            )
            gc.collect()

        logger.info(
            "Enrichment finished: %d processed, %d with contacts, %d contacts stored",
            self.stats.processed,
            self.stats.with_contacts,
            self.stats.contacts_inserted,
        )
        return self.stats

    def _make_task(self, establishment: Establishment):
        async def task() -> None:
            await self._enrich_one(establishment)

        return task

    async def _enrich_one(self, establishment: Establishment) -> None:
        contacts = await self.extractor.extract(establishment.website)
        stored = self.persist(establishment.id, contacts)
        self.stats.processed += 1
        if stored:
            self.stats.with_contacts += 1

    def persist(self, establishment_id: int, contacts: ExtractedContacts) -> int:
        inserted = 0
        for contact_type, values in capped_contacts(contacts).items():
            for value in values:
                if self.store.insert_contact(establishment_id, contact_type, value):
                    inserted += 1
        self.stats.contacts_inserted += inserted
        return inserted
