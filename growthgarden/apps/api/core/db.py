"""Database connection bootstrap and idempotent schema creation."""

from __future__ import annotations

import asyncio
import logging
import re
import socket
import ssl
from typing import Any
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import asyncpg

from growthgarden.libs.logging_utils import colorize, mask_dsn
from growthgarden.libs.schemas.settings import AppSettings

logger = logging.getLogger(__name__)

_COMMENT_RE = re.compile(r"--.*?$|/\*.*?\*/", re.MULTILINE | re.DOTALL)
_SUPABASE_HOST_RE = re.compile(r"^db\.(?P<ref>[a-z0-9]+)\.supabase\.co$", re.IGNORECASE)

# Substrings that mark a connection failure worth retrying through another route.
FALLBACK_ERROR_MARKERS: dict[str, tuple[str, ...]] = {
    "ipv6_unreachable": ("ENETUNREACH", "Network is unreachable"),
    "tenant_not_found": ("Tenant or user not found",),
    "dns": ("ENOTFOUND", "Name or service not known", "getaddrinfo"),
    "timeout": ("timeout", "timed out"),
}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    avatar_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS goals (
    id SERIAL PRIMARY KEY,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    description TEXT,
    plant_type TEXT NOT NULL DEFAULT 'sprout',
    current_level INTEGER NOT NULL DEFAULT 1,
    current_xp INTEGER NOT NULL DEFAULT 0,
    max_xp INTEGER NOT NULL DEFAULT 100,
    timeline_months INTEGER NOT NULL DEFAULT 3,
    status TEXT NOT NULL DEFAULT 'active',
    last_watered TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS actions (
    id SERIAL PRIMARY KEY,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    goal_id INTEGER NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    xp_reward INTEGER NOT NULL DEFAULT 15,
    personal_reward TEXT,
    is_completed BOOLEAN NOT NULL DEFAULT FALSE,
    due_date TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    feeling TEXT,
    reflection TEXT,
    difficulty INTEGER,
    satisfaction INTEGER,
    reflected_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS achievements (
    id SERIAL PRIMARY KEY,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    key TEXT,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    icon_name TEXT NOT NULL,
    unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS daily_habits (
    id SERIAL PRIMARY KEY,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    eat_healthy BOOLEAN NOT NULL DEFAULT FALSE,
    exercise BOOLEAN NOT NULL DEFAULT FALSE,
    sleep_before_11pm BOOLEAN NOT NULL DEFAULT FALSE,
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Databases created before achievement keys existed.
ALTER TABLE achievements ADD COLUMN IF NOT EXISTS key TEXT;

-- Keep the newest row per day before the unique index exists.
DELETE FROM daily_habits older USING daily_habits newer
WHERE older.user_id = newer.user_id AND older.date = newer.date AND older.id < newer.id;

CREATE UNIQUE INDEX IF NOT EXISTS achievements_user_key_idx ON achievements (user_id, key);
CREATE UNIQUE INDEX IF NOT EXISTS daily_habits_user_date_idx ON daily_habits (user_id, date);
CREATE INDEX IF NOT EXISTS goals_user_idx ON goals (user_id);
CREATE INDEX IF NOT EXISTS actions_user_idx ON actions (user_id);
CREATE INDEX IF NOT EXISTS actions_goal_idx ON actions (goal_id);
"""

_TABLES = ("users", "goals", "actions", "achievements", "daily_habits")

_EXISTING_TABLES_SQL = """
SELECT table_name FROM information_schema.tables
WHERE table_schema = current_schema() AND table_name = ANY($1::text[])
"""

# Early databases stored plain TIMESTAMP columns.
_NAIVE_TIMESTAMPS_SQL = """
SELECT table_name, column_name FROM information_schema.columns
WHERE table_schema = current_schema()
  AND table_name = ANY($1::text[])
  AND data_type = 'timestamp without time zone'
"""


class DatabaseConfigError(RuntimeError):
    """Raised when the environment requires a database that is not configured."""


def _split_sql(sql: str) -> list[str]:
    """Return individual statements stripped of comments and whitespace."""

    cleaned = _COMMENT_RE.sub("", sql)
    statements: list[str] = []
    for chunk in cleaned.split(";"):
        statement = chunk.strip()
        if statement:
            statements.append(statement)
    return statements


def classify_connection_error(exc: BaseException) -> str | None:
    """Return the fallback category for ``exc``, or None when it should propagate."""

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    message = f"{type(exc).__name__}: {exc}"
    lowered = message.lower()
    for category, markers in FALLBACK_ERROR_MARKERS.items():
        if any(marker.lower() in lowered for marker in markers):
            return category
    if isinstance(exc, socket.gaierror):
        return "dns"
    return None


def rewrite_dsn(
    dsn: str,
    *,
    host: str | None = None,
    port: int | None = None,
    user: str | None = None,
) -> str:
    """Return ``dsn`` with the host, port or user replaced."""

    parts = urlsplit(dsn)
    current_user = unquote(parts.username) if parts.username else None
    password = unquote(parts.password) if parts.password else None
    new_user = user or current_user
    new_host = host or parts.hostname or ""
    new_port = port or parts.port

    netloc = ""
    if new_user:
        netloc = quote(new_user, safe="")
        if password is not None:
            netloc += ":" + quote(password, safe="")
        netloc += "@"
    netloc += f"[{new_host}]" if ":" in new_host else new_host
    if new_port:
        netloc += f":{new_port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def pooler_dsn(dsn: str, pooler_host: str | None, pooler_port: int = 6543) -> str | None:
    """Map a direct Supabase DSN onto the shared pooler, or None when not applicable."""

    if not pooler_host:
        return None
    host = urlsplit(dsn).hostname or ""
    match = _SUPABASE_HOST_RE.match(host)
    if match is None:
        return None
    ref = match.group("ref")
    return rewrite_dsn(dsn, host=pooler_host, port=pooler_port, user=f"postgres.{ref}")


def relaxed_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _ssl_option(mode: str) -> Any:
    mode = (mode or "auto").lower()
    if mode == "disable":
        return False
    if mode == "require":
        return relaxed_ssl_context()
    return None


async def resolve_ipv4(host: str, port: int = 5432) -> str | None:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, family=socket.AF_INET, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        logger.warning("IPv4 lookup failed for %s: %s", host, exc)
        return None
    for info in infos:
        address = info[4][0]
        if address:
            return address
    return None


async def _open_pool(dsn: str, settings: AppSettings, *, ssl_option: Any = None) -> asyncpg.Pool:
    kwargs: dict[str, Any] = {
        "min_size": settings.db_pool_min_size,
        "max_size": settings.db_pool_max_size,
        "command_timeout": settings.db_command_timeout,
        "max_inactive_connection_lifetime": settings.db_max_inactive_lifetime,
        "statement_cache_size": 0,
        "timeout": settings.db_connect_timeout,
    }
    if ssl_option is not None:
        kwargs["ssl"] = ssl_option
    pool = await asyncpg.create_pool(dsn, **kwargs)
    try:
        # min_size may be zero, so prove the route works before handing it out.
        async with pool.acquire() as connection:
            await connection.execute("SELECT 1")
    except BaseException:
        await pool.close()
        raise
    return pool


async def _attempt(stage: str, dsn: str, settings: AppSettings, *, ssl_option: Any) -> asyncpg.Pool | None:
    """Try one connection route; return None on a fallback-class failure."""

    logger.info("Database connect attempt (%s): %s", stage, mask_dsn(dsn))
    try:
        pool = await _open_pool(dsn, settings, ssl_option=ssl_option)
    except Exception as exc:
        category = classify_connection_error(exc)
        if category is None:
            raise
        logger.warning(
            "Database connect attempt (%s) failed [%s]: %s",
            stage,
            category,
            exc,
            extra={"event": "db_connect_failed", "stage": stage, "category": category},
        )
        return None
    logger.info(colorize(f"Database connected via {stage}", "green"))
    return pool


async def connect_database(settings: AppSettings) -> asyncpg.Pool | None:
    """Open a pool using the staged fallbacks, or return None for volatile mode."""

    dsn = settings.database_url
    if not dsn:
        if settings.is_production:
            raise DatabaseConfigError(
                "DATABASE_URL or SUPABASE_DB_URL environment variable is required for production"
            )
        logger.warning("No database configured; using in-memory storage")
        return None

    ssl_option = _ssl_option(settings.db_ssl_mode)
    pool = await _attempt("direct", dsn, settings, ssl_option=ssl_option)
    if pool is not None:
        return pool

    host = urlsplit(dsn).hostname
    if host:
        address = await resolve_ipv4(host, urlsplit(dsn).port or 5432)
        if address and address != host:
            ipv4_ssl = False if settings.db_ssl_mode == "disable" else relaxed_ssl_context()
            pool = await _attempt("ipv4", rewrite_dsn(dsn, host=address), settings, ssl_option=ipv4_ssl)
            if pool is not None:
                return pool

    pooled = pooler_dsn(dsn, settings.supabase_pooler_host, settings.supabase_pooler_port)
    if pooled:
        pool = await _attempt("pooler", pooled, settings, ssl_option=ssl_option)
        if pool is not None:
            return pool

    logger.error(colorize("All database connection attempts failed", "red"))
    return None


async def ensure_schema(pool: asyncpg.Pool) -> bool:
    """Create missing tables and upgrade older databases in place.

    Every statement is idempotent, so this runs on each startup. Returns True
    when the users table did not exist beforehand.
    """

    async with pool.acquire() as connection:
        existing = await connection.fetch(_EXISTING_TABLES_SQL, list(_TABLES))
        created = "users" not in {row["table_name"] for row in existing}

        for statement in _split_sql(SCHEMA_SQL):
            try:
                await connection.execute(statement)
            except (asyncpg.exceptions.DuplicateTableError, asyncpg.exceptions.DuplicateObjectError) as exc:
                # Another instance won the race for this object.
                logger.debug("Schema statement skipped: %s", exc)

        for row in await connection.fetch(_NAIVE_TIMESTAMPS_SQL, list(_TABLES)):
            table, column = row["table_name"], row["column_name"]
            logger.info("Converting %s.%s to TIMESTAMPTZ", table, column)
            await connection.execute(
                f'ALTER TABLE "{table}" ALTER COLUMN "{column}" '
                f"TYPE TIMESTAMPTZ USING \"{column}\" AT TIME ZONE 'UTC'"
            )

    if created:
        logger.info(colorize("Database schema created", "green"))
    return created



__all__ = [
    "DatabaseConfigError",
    "FALLBACK_ERROR_MARKERS",
    "SCHEMA_SQL",
    "classify_connection_error",
    "connect_database",
    "ensure_schema",
    "pooler_dsn",
    "relaxed_ssl_context",
    "resolve_ipv4",
    "rewrite_dsn",
]
