"""Application configuration helpers.

Operational knobs (limits, delays, toggles) come from the environment. The
domain tables below (search keywords, category lookup, contact caps) change
rarely and are kept in code.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Search keywords issued once per location, in priority order.
KEYWORDS: Tuple[str, ...] = (
    # Reprodução humana (prioridade alta)
    "clínica reprodução humana",
    "fertilização in vitro FIV",
    "reprodução assistida",
    # Laboratórios especializados
    "laboratório genética",
    "laboratório citogenética",
    "laboratório andrologia",
    "diagnóstico molecular",
    # Laboratórios gerais
    "laboratório análises clínicas",
)

# First match wins; keys are matched as whole words on normalized text.
CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("reprodução humana", "REPRODUCAO_HUMANA"),
    ("fertilização", "REPRODUCAO_HUMANA"),
    ("fiv", "REPRODUCAO_HUMANA"),
    ("reprodução assistida", "REPRODUCAO_HUMANA"),
    ("genética", "LABORATORIO_GENETICA"),
    ("citogenética", "LABORATORIO_GENETICA"),
    ("diagnóstico molecular", "LABORATORIO_GENETICA"),
    ("andrologia", "LABORATORIO_ANDROLOGIA"),
    ("análises clínicas", "LABORATORIO_ANALISES"),
    ("hospital", "HOSPITAL"),
    ("maternidade", "HOSPITAL"),
)
DEFAULT_CATEGORY = "OUTROS"

# Maximum Contact rows persisted per establishment and type.
CONTACT_CAPS: Dict[str, int] = {
    "email": 3,
    "phone": 3,
    "whatsapp": 2,
    "instagram": 2,
    "facebook": 2,
    "linkedin": 2,
}

SEARCH_SOURCE = "serper"


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class FilterToggles:
    pdf_or_document: bool = True
    url_pattern: bool = True
    domain_blacklist: bool = True
    news_article: bool = True
    academic_paper: bool = True
    generic_title: bool = True
    topic_relevance: bool = True


@dataclass(frozen=True)
class Settings:
    serper_api_key: str = ""
    database_url: str = ""
    regions: Tuple[str, ...] = ("RS", "SC", "PR")
    min_population: int = 30000
    search_delay: float = 1.0
    search_concurrency: int = 3
    rate_limit_cooldown: float = 10.0
    crawl_concurrency: int = 1
    crawl_delay: float = 0.5
    crawl_timeout: float = 10.0
    crawl_max_bytes: int = 5 * 1024 * 1024
    crawl_max_redirects: int = 3
    crawl_batch_size: int = 50
    enrich_follow_contact_page: bool = False
    fuzzy_dedupe_enabled: bool = True
    fuzzy_dedupe_threshold: float = 0.85
    fuzzy_max_partition: int = 500
    log_rejected: bool = False
    admit_all_on_population_failure: bool = False
    worker_port: int = 9000
    filters: FilterToggles = field(default_factory=FilterToggles)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_ms(name: str, default_ms: int) -> float:
    return int(os.getenv(name, str(default_ms))) / 1000.0


def require_serper_key(settings: Settings) -> str:
    if not settings.serper_api_key:
        raise ConfigError("SERPER_API_KEY must be set in the environment before running searches.")
    return settings.serper_api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    serper_api_key = os.getenv("SERPER_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    regions_raw = os.getenv("REGIONS", "RS,SC,PR")
    regions = tuple(part.strip().upper() for part in regions_raw.split(",") if part.strip())

    filters = FilterToggles(
        pdf_or_document=_env_bool("FILTER_PDF_OR_DOCUMENT", True),
        url_pattern=_env_bool("FILTER_URL_PATTERN", True),
        domain_blacklist=_env_bool("FILTER_DOMAIN_BLACKLIST", True),
        news_article=_env_bool("FILTER_NEWS_ARTICLE", True),
        academic_paper=_env_bool("FILTER_ACADEMIC_PAPER", True),
        generic_title=_env_bool("FILTER_GENERIC_TITLE", True),
        topic_relevance=_env_bool("FILTER_TOPIC_RELEVANCE", True),
    )

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not serper_api_key:
        logger.warning("SERPER_API_KEY is not configured; search collection cannot run.")

    return Settings(
        serper_api_key=serper_api_key,
        database_url=database_url,
        regions=regions,
        min_population=int(os.getenv("MIN_POPULATION", "30000")),
        search_delay=_env_ms("RATE_LIMIT_MS", 1000),
        search_concurrency=int(os.getenv("CONCURRENT_REQUESTS", "3")),
        rate_limit_cooldown=_env_ms("RATE_LIMIT_COOLDOWN_MS", 10000),
        crawl_concurrency=int(os.getenv("CONCURRENT_CRAWLS", "1")),
        crawl_delay=_env_ms("CRAWL_DELAY_MS", 500),
        crawl_timeout=_env_ms("CRAWL_TIMEOUT_MS", 10000),
        crawl_max_bytes=int(os.getenv("CRAWL_MAX_BYTES", str(5 * 1024 * 1024))),
        crawl_max_redirects=int(os.getenv("CRAWL_MAX_REDIRECTS", "3")),
        crawl_batch_size=int(os.getenv("CRAWL_BATCH_SIZE", "50")),
        enrich_follow_contact_page=_env_bool("ENRICH_FOLLOW_CONTACT_PAGE", False),
        fuzzy_dedupe_enabled=_env_bool("FUZZY_DEDUPE_ENABLED", True),
        fuzzy_dedupe_threshold=float(os.getenv("FUZZY_DEDUPE_THRESHOLD", "0.85")),
        fuzzy_max_partition=int(os.getenv("FUZZY_MAX_PARTITION", "500")),
        log_rejected=_env_bool("LOG_REJECTED", False),
        admit_all_on_population_failure=_env_bool("ADMIT_ALL_ON_POPULATION_FAILURE", False),
        worker_port=int(os.getenv("WORKER_PORT", "9000")),
        filters=filters,
    )
