"""Establishment deduplication: exact key, shared website, fuzzy name within a location."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from rapidfuzz.distance import Levenshtein

from biomed_leads.core.config import Settings, get_settings
from biomed_leads.core.models import Establishment
from biomed_leads.core.text import strip_legal_suffix

logger = logging.getLogger(__name__)


@dataclass
class DedupeReport:
    exact: int = 0
    url: int = 0
    fuzzy: int = 0

    @property
    def total(self) -> int:
        return self.exact + self.url + self.fuzzy


def name_similarity(a: str, b: str) -> float:
    """(max_len - levenshtein) / max_len, in [0, 1]."""
    return Levenshtein.normalized_similarity(a, b)


def website_key(website: Optional[str]) -> str:
    return (website or "").strip().rstrip("/").lower()


def exact_duplicates(rows: List[Establishment]) -> Set[int]:
    """Ids sharing (name_normalized, location) with a lower id."""
    groups: Dict[tuple, List[int]] = defaultdict(list)
    for row in rows:
        groups[(row.name_normalized, row.location_id)].append(row.id)
    return {id_ for ids in groups.values() for id_ in sorted(ids)[1:]}


def url_duplicates(rows: List[Establishment]) -> Set[int]:
    """Ids sharing a non-empty website with a lower id."""
    groups: Dict[str, List[int]] = defaultdict(list)
    for row in rows:
        key = website_key(row.website)
        if key:
            groups[key].append(row.id)
    return {id_ for ids in groups.values() for id_ in sorted(ids)[1:]}


def fuzzy_duplicates(rows: List[Establishment], threshold: float, max_partition: Optional[int] = None) -> Set[int]:
    """Pairwise near-duplicate detection, partitioned by location.

    For a matching pair the record without a website loses; otherwise the
    later one does. Pairs whose length ratio already rules out the threshold
    are skipped, since the edit distance is at least the length difference.
    """
    partitions: Dict[int, List[Establishment]] = defaultdict(list)
    for row in sorted(rows, key=lambda r: r.id):
        partitions[row.location_id].append(row)

    removed: Set[int] = set()
    for location_id, members in partitions.items():
        if max_partition and len(members) > max_partition:
            logger.warning(
                "Skipping fuzzy dedupe for location %s: %d candidates exceeds cap %d",
                location_id,
                len(members),
                max_partition,
            )
            continue

        keys = [strip_legal_suffix(member.name_normalized) for member in members]
        for i, first in enumerate(members):
            if first.id in removed:
                continue
            for j in range(i + 1, len(members)):
                second = members[j]
                if second.id in removed:
                    continue
                a, b = keys[i], keys[j]
                longest = max(len(a), len(b))
                if longest and min(len(a), len(b)) / longest < threshold:
                    continue
                if name_similarity(a, b) < threshold:
                    continue

                loser = first if (not first.website and second.website) else second
                removed.add(loser.id)
                logger.debug("Fuzzy duplicate %r ~ %r, removing id=%s", a, b, loser.id)
                if loser is first:
                    break
    return removed


class Deduplicator:
    """Run the three passes in order; each deletes from the store and logs its count."""

    def __init__(
        self,
        store,
        *,
        settings: Optional[Settings] = None,
        fuzzy_enabled: Optional[bool] = None,
        threshold: Optional[float] = None,
        max_partition: Optional[int] = None,
    ) -> None:
        settings = settings or get_settings()
        self.store = store
        self.fuzzy_enabled = settings.fuzzy_dedupe_enabled if fuzzy_enabled is None else fuzzy_enabled
        self.threshold = settings.fuzzy_dedupe_threshold if threshold is None else threshold
        self.max_partition = settings.fuzzy_max_partition if max_partition is None else max_partition

    def run(self) -> DedupeReport:
        logger.info("Removing duplicate establishments")
        report = DedupeReport()
        report.exact = self._apply("exact", exact_duplicates(self.store.list_establishments()))
        report.url = self._apply("url", url_duplicates(self.store.list_establishments()))
        if self.fuzzy_enabled:
            candidates = fuzzy_duplicates(self.store.list_establishments(), self.threshold, self.max_partition)
            report.fuzzy = self._apply("fuzzy", candidates)
        else:
            logger.info("Fuzzy dedupe disabled")
        logger.info("Dedupe finished: %d establishments removed", report.total)
        return report

    def _apply(self, pass_name: str, ids: Set[int]) -> int:
        removed = self.store.delete_establishments(ids) if ids else 0
        logger.info("Dedupe %s pass removed %d rows", pass_name, removed)
        return removed
