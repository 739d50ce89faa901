"""PostgreSQL persistence for locations, establishments, contacts and the search log."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from psycopg2 import pool

from biomed_leads.core.config import get_settings
from biomed_leads.core.models import Establishment, Location, RejectedResult

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS locations (
        id SERIAL PRIMARY KEY,
        region VARCHAR(2) NOT NULL,
        name TEXT NOT NULL,
        ibge_id INTEGER,
        population INTEGER NOT NULL DEFAULT 0,
        UNIQUE (region, name)
    )
    """,
    "ALTER TABLE locations ADD COLUMN IF NOT EXISTS lat DOUBLE PRECISION",
    "ALTER TABLE locations ADD COLUMN IF NOT EXISTS lng DOUBLE PRECISION",
    """
    CREATE TABLE IF NOT EXISTS search_log (
        id SERIAL PRIMARY KEY,
        location_id INTEGER NOT NULL REFERENCES locations (id) ON DELETE CASCADE,
        keyword TEXT NOT NULL,
        source TEXT NOT NULL,
        results_count INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (location_id, keyword, source)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS establishments (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        name_normalized TEXT NOT NULL,
        location_id INTEGER NOT NULL REFERENCES locations (id) ON DELETE CASCADE,
        category TEXT NOT NULL,
        website TEXT,
        source TEXT NOT NULL,
        source_url TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (name_normalized, location_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_establishments_website ON establishments (website)",
    """
    CREATE TABLE IF NOT EXISTS contacts (
        id SERIAL PRIMARY KEY,
        establishment_id INTEGER NOT NULL REFERENCES establishments (id) ON DELETE CASCADE,
        type TEXT NOT NULL,
        value TEXT NOT NULL,
        UNIQUE (establishment_id, type, value)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rejected_results (
        id SERIAL PRIMARY KEY,
        location_id INTEGER REFERENCES locations (id) ON DELETE CASCADE,
        keyword TEXT,
        title TEXT,
        link TEXT,
        reason TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
)

_INSERT_LOCATION = """
INSERT INTO locations (region, name, ibge_id, population)
VALUES (%(region)s, %(name)s, %(ibge_id)s, %(population)s)
ON CONFLICT (region, name) DO NOTHING;
"""

_INSERT_SEARCH_LOG = """
INSERT INTO search_log (location_id, keyword, source, results_count)
VALUES (%(location_id)s, %(keyword)s, %(source)s, %(results_count)s)
ON CONFLICT (location_id, keyword, source) DO NOTHING;
"""

_INSERT_ESTABLISHMENT = """
INSERT INTO establishments (
    name,
    name_normalized,
    location_id,
    category,
    website,
    source,
    source_url
) VALUES (
    %(name)s,
    %(name_normalized)s,
    %(location_id)s,
    %(category)s,
    %(website)s,
    %(source)s,
    %(source_url)s
)
ON CONFLICT (name_normalized, location_id) DO NOTHING
RETURNING id;
"""

_INSERT_CONTACT = """
INSERT INTO contacts (establishment_id, type, value)
VALUES (%s, %s, %s)
ON CONFLICT (establishment_id, type, value) DO NOTHING;
"""

_INSERT_REJECTED = """
INSERT INTO rejected_results (location_id, keyword, title, link, reason)
VALUES (%(location_id)s, %(keyword)s, %(title)s, %(link)s, %(reason)s);
"""

_SELECT_ESTABLISHMENTS = """
SELECT id, name, name_normalized, location_id, category, website, source, source_url
FROM establishments
ORDER BY id
"""

_SELECT_WITHOUT_CONTACTS = """
SELECT e.id, e.name, e.name_normalized, e.location_id, e.category, e.website, e.source, e.source_url
FROM establishments e
LEFT JOIN contacts c ON c.establishment_id = e.id
WHERE e.website IS NOT NULL
  AND e.website <> ''
  AND c.id IS NULL
ORDER BY e.id
"""


def _establishment_params(establishment: Establishment) -> Dict[str, Any]:
    return {
        "name": establishment.name,
        "name_normalized": establishment.name_normalized,
        "location_id": establishment.location_id,
        "category": establishment.category,
        "website": establishment.website or None,
        "source": establishment.source,
        "source_url": establishment.source_url,
    }


def _row_to_establishment(row) -> Establishment:
    id_, name, name_normalized, location_id, category, website, source, source_url = row
    return Establishment(
        id=id_,
        name=name,
        name_normalized=name_normalized,
        location_id=location_id,
        category=category,
        website=website,
        source=source,
        source_url=source_url,
    )


class PostgresStore:
    """Persisted-store collaborator; every insert skips silently on natural-key conflict."""

    def __init__(self, database_url: Optional[str] = None, *, connection_pool=None) -> None:
        self.database_url = database_url if database_url is not None else get_settings().database_url
        self._pool = connection_pool

    def init_pool(self, minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
        """Initialise and return this store's connection pool."""
        if self._pool is None:
            if not self.database_url:
                raise RuntimeError("DATABASE_URL is required for database connections")
            self._pool = pool.SimpleConnectionPool(
                minconn,
                maxconn,
                dsn=self.database_url,
                connect_timeout=10,
            )
            logger.info("Database connection pool initialised")
        return self._pool

    @contextmanager
    def connection(self):
        """Context manager yielding a pooled connection, committed on success."""
        pg_pool = self.init_pool()
        conn = pg_pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pg_pool.putconn(conn)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    # -- schema --------------------------------------------------------

    def ensure_schema(self) -> None:
        with self.connection() as conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)
        logger.info("Database schema ensured")

    # -- locations -----------------------------------------------------

    def upsert_locations(self, locations: Iterable[Location]) -> int:
        inserted = 0
        with self.connection() as conn:
            with conn.cursor() as cur:
                for location in locations:
                    cur.execute(
                        _INSERT_LOCATION,
                        {
                            "region": location.region,
                            "name": location.name,
                            "ibge_id": location.ibge_id,
                            "population": location.population,
                        },
                    )
                    inserted += cur.rowcount
        return inserted

    def list_locations(self, min_population: int = 0) -> List[Location]:
        """Locations ordered by descending population."""
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, region, name, population, ibge_id, lat, lng FROM locations "
                    "WHERE population >= %s ORDER BY population DESC, id",
                    (min_population,),
                )
                rows = cur.fetchall()
        return [
            Location(id=r[0], region=r[1], name=r[2], population=r[3], ibge_id=r[4], lat=r[5], lng=r[6])
            for r in rows
        ]

    def update_coordinates(self, ibge_id: int, lat: float, lng: float) -> bool:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("UPDATE locations SET lat = %s, lng = %s WHERE ibge_id = %s", (lat, lng, ibge_id))
                return cur.rowcount > 0

    # -- search log ----------------------------------------------------

    def has_search_log(self, location_id: int, keyword: str, source: str) -> bool:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM search_log WHERE location_id = %s AND keyword = %s AND source = %s",
                    (location_id, keyword, source),
                )
                return cur.fetchone() is not None

    def log_search(self, location_id: int, keyword: str, source: str, results_count: int) -> bool:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    _INSERT_SEARCH_LOG,
                    {
                        "location_id": location_id,
                        "keyword": keyword,
                        "source": source,
                        "results_count": results_count,
                    },
                )
                return cur.rowcount > 0

    def count_search_log(self) -> int:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM search_log")
                return cur.fetchone()[0]

    def reset_search_log(self, source: Optional[str] = None) -> int:
        with self.connection() as conn:
            with conn.cursor() as cur:
                if source:
                    cur.execute("DELETE FROM search_log WHERE source = %s", (source,))
                else:
                    cur.execute("DELETE FROM search_log")
                removed = cur.rowcount
        logger.info("Search log reset: %d entries removed", removed)
        return removed

    # -- establishments ------------------------------------------------

    def insert_establishment(self, establishment: Establishment) -> Optional[int]:
        """Insert and return the new id, or None when the natural key already exists."""
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_ESTABLISHMENT, _establishment_params(establishment))
                row = cur.fetchone()
        if row is None:
            logger.debug("Skipped existing establishment %s", establishment.name_normalized)
            return None
        return row[0]

    def list_establishments(self) -> List[Establishment]:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_SELECT_ESTABLISHMENTS)
                return [_row_to_establishment(row) for row in cur.fetchall()]

    def establishments_without_contacts(self) -> List[Establishment]:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_SELECT_WITHOUT_CONTACTS)
                return [_row_to_establishment(row) for row in cur.fetchall()]

    def delete_establishments(self, ids: Iterable[int]) -> int:
        ids = sorted(set(ids))
        if not ids:
            return 0
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM establishments WHERE id = ANY(%s)", (ids,))
                return cur.rowcount

    def count_establishments(self) -> int:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM establishments")
                return cur.fetchone()[0]

    # -- contacts / diagnostics ----------------------------------------

    def insert_contact(self, establishment_id: int, contact_type: str, value: str) -> bool:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_CONTACT, (establishment_id, contact_type, value))
                return cur.rowcount > 0

    def log_rejected(self, rejected: RejectedResult) -> None:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    _INSERT_REJECTED,
                    {
                        "location_id": rejected.location_id,
                        "keyword": rejected.keyword,
                        "title": rejected.title,
                        "link": rejected.link,
                        "reason": rejected.reason,
                    },
                )
