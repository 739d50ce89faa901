"""Scraper for the REDLARA accredited reproduction centre listing."""

import logging
from typing import List

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
REDLARA_URL = "https://www.redlara.com/quem_somos.asp?MYPK3=Centros&centro_pais=Brasil"
REQUEST_TIMEOUT = 15
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def parse_centers(html: str, country: str = "Brasil") -> List[str]:
    """Centre names from ``table tr`` rows whose first cell is the country."""
    soup = BeautifulSoup(html, "html.parser")
    centers: List[str] = []
    for row in soup.select("table tr"):
        cells = row.find_all("td")
        if len(cells) < 2:
            continue
        if cells[0].get_text(strip=True) != country:
            continue
        name = cells[1].get_text(" ", strip=True)
        if name:
            centers.append(name)
    return centers


def fetch_centers() -> List[str]:
    response = _SESSION.get(REDLARA_URL, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return parse_centers(response.text)
