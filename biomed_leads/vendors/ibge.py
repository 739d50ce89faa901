"""Client utilities for the IBGE localities/population APIs and the municipalities CSV."""

import csv
import io
import logging
from typing import Any, Dict, List, Tuple

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_LOCALITIES_URL = "https://servicodados.ibge.gov.br/api/v1/localidades/estados/{uf}/municipios"
_POPULATION_URL = (
    "https://servicodados.ibge.gov.br/api/v3/agregados/6579/periodos/-1/variaveis/9324?localidades=N6[N3[{uf}]]"
)
COORDINATES_CSV_URL = "https://raw.githubusercontent.com/kelvins/Municipios-Brasileiros/main/csv/municipios.csv"
REQUEST_TIMEOUT = 15


def fetch_municipalities(uf: str) -> List[Dict[str, Any]]:
    """Return ``[{"id": ibge_id, "nome": name}, ...]`` for a state."""
    response = _SESSION.get(_LOCALITIES_URL.format(uf=uf), timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, list):
        raise ValueError(f"unexpected municipalities payload for {uf}")
    return payload


def parse_population(payload: Any) -> Dict[int, int]:
    populations: Dict[int, int] = {}
    try:
        series = payload[0]["resultados"][0]["series"]
    except (IndexError, KeyError, TypeError):
        return populations

    for serie in series:
        try:
            ibge_id = int(serie["localidade"]["id"])
            values = list(serie["serie"].values())
            populations[ibge_id] = int(values[0]) if values else 0
        except (KeyError, TypeError, ValueError):
            continue
    return populations


def fetch_population(uf: str) -> Dict[int, int]:
    """Latest population estimate keyed by IBGE municipality id."""
    response = _SESSION.get(_POPULATION_URL.format(uf=uf), timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    populations = parse_population(response.json())
    if not populations:
        raise ValueError(f"empty population series for {uf}")
    return populations


def parse_coordinates_csv(text: str) -> Dict[int, Tuple[float, float]]:
    coordinates: Dict[int, Tuple[float, float]] = {}
    for record in csv.DictReader(io.StringIO(text)):
        try:
            coordinates[int(record["codigo_ibge"])] = (float(record["latitude"]), float(record["longitude"]))
        except (KeyError, TypeError, ValueError):
            continue
    return coordinates


def fetch_coordinates() -> Dict[int, Tuple[float, float]]:
    response = _SESSION.get(COORDINATES_CSV_URL, timeout=REQUEST_TIMEOUT * 2)
    response.raise_for_status()
    return parse_coordinates_csv(response.text)
