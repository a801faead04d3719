"""Create the WordMon tables in PostgreSQL (``wordmon-migrate``)."""

from __future__ import annotations

import logging
from pathlib import Path

from wordmon.backend.config import load_settings

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


def apply_schema(database_url: str, schema_path: Path = SCHEMA_PATH) -> None:
    import psycopg

    schema_sql = schema_path.read_text(encoding="utf-8")
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
        conn.commit()


def main() -> int:
    settings = load_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
    if not settings.database_url:
        raise RuntimeError("WORDMON_DATABASE_URL is required for migration")

    apply_schema(settings.database_url)
    logger.info("schema %s applied", SCHEMA_PATH.name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
