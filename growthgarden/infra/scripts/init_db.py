"""Connect with the staged fallbacks and create the GrowthGarden tables."""

from __future__ import annotations

import asyncio
import logging
import sys

from growthgarden.apps.api.core.db import DatabaseConfigError, connect_database, ensure_schema
from growthgarden.libs.logging_utils import configure_logging
from growthgarden.libs.schemas.settings import get_settings

logger = logging.getLogger(__name__)


async def init_db() -> int:
    """Return a process exit code: 0 on success, 1 when no database was reached."""

    settings = get_settings()
    if not settings.database_url:
        logger.error("DATABASE_URL or SUPABASE_DB_URL must be set to initialise the database")
        return 1
    try:
        pool = await connect_database(settings)
    except DatabaseConfigError as exc:
        logger.error("%s", exc)
        return 1
    if pool is None:
        logger.error("Could not connect to the database")
        return 1
    try:
        created = await ensure_schema(pool)
    finally:
        await pool.close()
    logger.info("Schema %s", "created" if created else "up to date")
    return 0


def main() -> None:  # pragma: no cover - CLI entrypoint
    configure_logging()
    sys.exit(asyncio.run(init_db()))


if __name__ == "__main__":  # pragma: no cover
    main()
