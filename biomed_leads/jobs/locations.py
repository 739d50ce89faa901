"""Load target municipalities (with population and coordinates) into the store."""

import logging
from typing import Dict, List, Optional, Tuple

import requests

from biomed_leads.core.config import Settings, get_settings
from biomed_leads.core.models import Location
from biomed_leads.core.text import normalize
from biomed_leads.vendors import ibge

logger = logging.getLogger(__name__)

# Census 2022 figures for the larger southern municipalities, used when the
# population API is unavailable. Keyed by (uf, normalized name).
FALLBACK_POPULATION: Dict[Tuple[str, str], int] = {
    ("RS", "porto alegre"): 1332570,
    ("RS", "caxias do sul"): 463338,
    ("RS", "canoas"): 347657,
    ("RS", "pelotas"): 325685,
    ("RS", "santa maria"): 271735,
    ("RS", "gravatai"): 265070,
    ("RS", "novo hamburgo"): 227646,
    ("RS", "passo fundo"): 206215,
    ("RS", "sao leopoldo"): 217409,
    ("RS", "santa cruz do sul"): 133230,
    ("RS", "erechim"): 105705,
    ("SC", "joinville"): 616323,
    ("SC", "florianopolis"): 537211,
    ("SC", "blumenau"): 361261,
    ("SC", "sao jose"): 270299,
    ("SC", "itajai"): 264054,
    ("SC", "chapeco"): 254781,
    ("SC", "criciuma"): 214493,
    ("SC", "lages"): 164981,
    ("SC", "joacaba"): 30146,
    ("PR", "curitiba"): 1773718,
    ("PR", "londrina"): 555965,
    ("PR", "maringa"): 409657,
    ("PR", "ponta grossa"): 358371,
    ("PR", "cascavel"): 348051,
    ("PR", "sao jose dos pinhais"): 329058,
    ("PR", "foz do iguacu"): 285415,
    ("PR", "colombo"): 232212,
    ("PR", "guarapuava"): 182093,
}


def _populations_for(uf: str) -> Optional[Dict[int, int]]:
    try:
        return ibge.fetch_population(uf)
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Population unavailable for %s, using fallback table: %s", uf, exc)
        return None


def select_locations(
    uf: str,
    municipalities: List[dict],
    populations: Optional[Dict[int, int]],
    *,
    min_population: int,
    admit_all: bool = False,
) -> List[Location]:
    """Apply the population threshold, consulting the fallback table when needed."""
    selected: List[Location] = []
    for municipality in municipalities:
        try:
            ibge_id = int(municipality["id"])
            name = str(municipality["nome"]).strip()
        except (KeyError, TypeError, ValueError):
            continue

        if populations is not None:
            population = populations.get(ibge_id, 0)
        else:
            population = FALLBACK_POPULATION.get((uf, normalize(name)), 0)
            if not population and admit_all:
                selected.append(Location(id=None, region=uf, name=name, population=0, ibge_id=ibge_id))
                continue

        if population >= min_population:
            selected.append(Location(id=None, region=uf, name=name, population=population, ibge_id=ibge_id))
    return selected


def load_locations(store, settings: Optional[Settings] = None) -> int:
    """Fetch municipalities for every configured region and persist the ones above threshold."""
    settings = settings or get_settings()
    logger.info("Collecting municipalities for regions %s", ", ".join(settings.regions))

    total = 0
    for uf in settings.regions:
        try:
            municipalities = ibge.fetch_municipalities(uf)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Municipalities unavailable for %s: %s", uf, exc)
            continue

        populations = _populations_for(uf)
        locations = select_locations(
            uf,
            municipalities,
            populations,
            min_population=settings.min_population,
            admit_all=settings.admit_all_on_population_failure,
        )
        inserted = store.upsert_locations(locations)
        total += len(locations)
        logger.info(
            "%s: %d municipalities with population >= %d (%d new)",
            uf,
            len(locations),
            settings.min_population,
            inserted,
        )

    logger.info("Locations loaded: %d", total)
    return total


def import_coordinates(store) -> int:
    """Attach latitude/longitude to stored locations from the municipalities CSV."""
    try:
        coordinates = ibge.fetch_coordinates()
    except requests.RequestException as exc:
        logger.warning("Coordinates dataset unavailable: %s", exc)
        return 0

    updated = 0
    for location in store.list_locations():
        if location.ibge_id is None or location.ibge_id not in coordinates:
            continue
        lat, lng = coordinates[location.ibge_id]
        if store.update_coordinates(location.ibge_id, lat, lng):
            updated += 1
    logger.info("Coordinates updated for %d locations", updated)
    return updated
