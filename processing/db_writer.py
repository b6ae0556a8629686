"""
PostgreSQL backing store for the enrichment cache.

Table aircraft_details is keyed by hex; writes are idempotent upserts
(last write wins). Rows are never expired by the alerter.
"""

import logging
import threading
from typing import Optional

import psycopg

from processing.models import EnrichmentDetail

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS aircraft_details (
        hex TEXT PRIMARY KEY,
        registration TEXT,
        airline TEXT,
        owner TEXT,
        aircraft_type TEXT,
        note TEXT,
        thumbnail_url TEXT,
        image_url TEXT,
        last_fetched_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    # Tables created before image columns existed
    "ALTER TABLE aircraft_details ADD COLUMN IF NOT EXISTS thumbnail_url TEXT",
    "ALTER TABLE aircraft_details ADD COLUMN IF NOT EXISTS image_url TEXT",
)

SELECT_DETAIL = """
    SELECT hex, registration, airline, owner, aircraft_type, thumbnail_url, image_url
    FROM aircraft_details
    WHERE hex = %s
"""

UPSERT_DETAIL = """
    INSERT INTO aircraft_details (
        hex, registration, airline, owner, aircraft_type,
        thumbnail_url, image_url, last_fetched_at
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
    ON CONFLICT (hex) DO UPDATE SET
        registration = EXCLUDED.registration,
        airline = EXCLUDED.airline,
        owner = EXCLUDED.owner,
        aircraft_type = EXCLUDED.aircraft_type,
        thumbnail_url = EXCLUDED.thumbnail_url,
        image_url = EXCLUDED.image_url,
        last_fetched_at = NOW()
"""


class PostgresDetailStore:
    """
    DetailStore backed by a single psycopg connection.

    The connection is shared by every poller thread, so statements are
    serialized with a lock. A broken connection is dropped and reopened on the
    next call.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._conn: Optional[psycopg.Connection] = None
        self._lock = threading.Lock()

    def _connection(self) -> psycopg.Connection:
        if self._conn is None or self._conn.closed:
            self._conn = psycopg.connect(self.database_url)
            logger.info("Database connection established")
        return self._conn

    def _rollback(self):
        if self._conn is None:
            return
        try:
            self._conn.rollback()
        except psycopg.Error as e:
            logger.warning(f"Rollback failed, dropping connection: {e}")
            self._conn.close()
            self._conn = None

    def ensure_schema(self):
        """Create aircraft_details if needed."""
        with self._lock:
            conn = self._connection()
            try:
                with conn.cursor() as cur:
                    for statement in SCHEMA_STATEMENTS:
                        cur.execute(statement)
                conn.commit()
            except psycopg.Error:
                self._rollback()
                raise
        logger.info("aircraft_details schema ready")

    def get(self, identifier: str) -> Optional[EnrichmentDetail]:
        with self._lock:
            conn = self._connection()
            try:
                with conn.cursor() as cur:
                    cur.execute(SELECT_DETAIL, (identifier,))
                    row = cur.fetchone()
                conn.commit()
            except psycopg.Error:
                self._rollback()
                raise

        if row is None:
            return None

        hex_, registration, airline, owner, aircraft_type, thumbnail_url, image_url = row
        return EnrichmentDetail(
            identifier=hex_,
            registration=registration or "",
            airline=airline or "",
            owner=owner or "",
            aircraft_type=aircraft_type or "",
            thumbnail_url=thumbnail_url or "",
            image_url=image_url or "",
        )

    def upsert(self, detail: EnrichmentDetail) -> None:
        with self._lock:
            conn = self._connection()
            try:
                with conn.cursor() as cur:
                    cur.execute(UPSERT_DETAIL, (
                        detail.identifier,
                        detail.registration,
                        detail.airline,
                        detail.owner,
                        detail.aircraft_type,
                        detail.thumbnail_url,
                        detail.image_url,
                    ))
                conn.commit()
            except psycopg.Error:
                self._rollback()
                raise

    def close(self):
        with self._lock:
            if self._conn is not None and not self._conn.closed:
                self._conn.close()
                logger.info("Database connection closed")
            self._conn = None
