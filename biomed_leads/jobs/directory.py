"""Seed specialist reproduction centres from the REDLARA directory."""

import logging
from typing import Iterable, List, Optional

import requests

from biomed_leads.core.models import Establishment, Location
from biomed_leads.core.text import normalize, normalize_location_name
from biomed_leads.vendors import redlara

logger = logging.getLogger(__name__)

DIRECTORY_SOURCE = "redlara"
DIRECTORY_CATEGORY = "REPRODUCAO_HUMANA"


def match_location(center_name: str, locations: Iterable[Location]) -> Optional[Location]:
    """Location whose name appears inside the centre name; longer names are tried first.

    Name-containment only, so abbreviations and centres named after people
    are not matched.
    """
    haystack = f" {normalize(center_name)} "
    candidates = sorted(locations, key=lambda location: len(location.name), reverse=True)
    for location in candidates:
        for needle in {normalize(location.name), normalize_location_name(location.name)}:
            if needle and f" {needle} " in haystack:
                return location
    return None


def collect_directory(store, locations: Optional[List[Location]] = None) -> int:
    logger.info("Collecting REDLARA centres")
    try:
        centers = redlara.fetch_centers()
    except requests.RequestException as exc:
        logger.warning("REDLARA directory unavailable: %s", exc)
        return 0

    locations = locations if locations is not None else store.list_locations()
    logger.info("Found %d REDLARA centres in Brazil", len(centers))

    inserted = 0
    for center in centers:
        location = match_location(center, locations)
        if location is None:
            logger.debug("No target location for centre %s", center)
            continue
        establishment = Establishment(
            name=center,
            name_normalized=normalize(center),
            location_id=location.id,
            category=DIRECTORY_CATEGORY,
            source=DIRECTORY_SOURCE,
            source_url=redlara.REDLARA_URL,
        )
        if store.insert_establishment(establishment) is not None:
            inserted += 1

    logger.info("REDLARA centres inserted: %d", inserted)
    return inserted
