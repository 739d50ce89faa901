"""Utilities for turning vendor payloads into establishment rows."""

import logging
from typing import Any, List, Optional

from biomed_leads.core.models import Establishment, Location, SearchResult
from biomed_leads.core.text import normalize

logger = logging.getLogger(__name__)


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def parse_organic_results(payload: Any) -> List[SearchResult]:
    """Extract ``organic`` entries from a search API response, skipping malformed ones."""
    if not payload:
        return []
    if not isinstance(payload, dict):
        logger.warning("Search response is not a JSON object: %s", type(payload).__name__)
        return []

    organic = payload.get("organic")
    if not isinstance(organic, list):
        if organic is not None:
            logger.warning("Search response has non-list organic field: %s", type(organic).__name__)
        return []

    results: List[SearchResult] = []
    for raw in organic:
        if not isinstance(raw, dict):
            continue
        title = _strip_or_none(raw.get("title"))
        link = _strip_or_none(raw.get("link"))
        if not title or not link:
            logger.debug("Skipping organic result without title/link: %s", raw)
            continue
        position = raw.get("position")
        results.append(
            SearchResult(
                title=title,
                link=link,
                snippet=_strip_or_none(raw.get("snippet")) or "",
                position=position if isinstance(position, int) else None,
            )
        )
    return results


def to_establishment(
    result: SearchResult,
    location: Location,
    category: str,
    source: str,
) -> Establishment:
    return Establishment(
        name=result.title,
        name_normalized=normalize(result.title),
        location_id=location.id,
        category=category,
        website=result.link,
        source=source,
        source_url=result.link,
    )
