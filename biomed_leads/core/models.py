"""Core data models shared by the collection, enrichment and dedupe stages."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

EARTH_RADIUS_KM = 6371


@dataclass(frozen=True, slots=True)
class Location:
    """A municipality used as search target and dedupe partition."""

    id: Optional[int]
    region: str
    name: str
    population: int = 0
    ibge_id: Optional[int] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    def distance_km(self, other: "Location") -> Optional[int]:
        """Haversine distance in whole kilometres, or None without coordinates."""
        if None in (self.lat, self.lng, other.lat, other.lng):
            return None

        d_lat = math.radians(other.lat - self.lat)
        d_lng = math.radians(other.lng - self.lng)
        a = (
            math.sin(d_lat / 2) ** 2
            + math.cos(math.radians(self.lat)) * math.cos(math.radians(other.lat)) * math.sin(d_lng / 2) ** 2
        )
        return round(EARTH_RADIUS_KM * 2 * math.asin(math.sqrt(a)))


@dataclass(slots=True)
class SearchResult:
    """One organic result returned by the search API."""

    title: str
    link: str
    snippet: str = ""
    position: Optional[int] = None


@dataclass(slots=True)
class Establishment:
    """Candidate organisation; (name_normalized, location_id) is the natural key."""

    name: str
    name_normalized: str
    location_id: int
    category: str
    website: Optional[str] = None
    source: str = "serper"
    source_url: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Contact:
    establishment_id: int
    type: str
    value: str


@dataclass(frozen=True, slots=True)
class SearchLogEntry:
    location_id: int
    keyword: str
    source: str
    results_count: int


@dataclass(frozen=True, slots=True)
class RejectedResult:
    location_id: int
    keyword: str
    title: str
    link: str
    reason: str


@dataclass(frozen=True, slots=True)
class Accept:
    category: str


@dataclass(frozen=True, slots=True)
class Reject:
    reason: str


Classification = Union[Accept, Reject]


@dataclass(slots=True)
class ExtractedContacts:
    """Typed contact identifiers found on a page, deduplicated per type."""

    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    whatsapp: List[str] = field(default_factory=list)
    socials: Dict[str, List[str]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.emails or self.phones or self.whatsapp or any(self.socials.values()))

    def merge(self, other: "ExtractedContacts") -> "ExtractedContacts":
        socials = {platform: list(handles) for platform, handles in self.socials.items()}
        for platform, handles in other.socials.items():
            socials[platform] = _unique(socials.get(platform, []) + handles)
        return ExtractedContacts(
            emails=_unique(self.emails + other.emails),
            phones=_unique(self.phones + other.phones),
            whatsapp=_unique(self.whatsapp + other.whatsapp),
            socials=socials,
        )

    def by_type(self) -> Dict[str, List[str]]:
        """Flatten into the Contact.type vocabulary."""
        typed = {"email": self.emails, "phone": self.phones, "whatsapp": self.whatsapp}
        typed.update(self.socials)
        return typed


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))
