"""Database engine construction and connectivity checks."""

import logging
import ssl
from typing import Any, Dict, Tuple, Union

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

# libpq parameters that asyncpg does not accept as connect() keywords
LIBPQ_SSL_PARAMETERS = ("sslmode", "sslrootcert")


class DatabaseUnavailable(Exception):
    """The database could not be reached with the configured connection string."""


def split_ssl_options(database_url: Union[str, URL]) -> Tuple[URL, Dict[str, Any]]:
    """
    Move libpq SSL query parameters out of a connection string.

    Managed PostgreSQL URLs commonly carry `sslmode` (and `sslrootcert`), which asyncpg rejects.
    They are removed from the URL and returned as asyncpg `connect_args` instead: the mode is
    passed through as asyncpg's `ssl` mode string, and a root certificate becomes an
    `ssl.SSLContext` that trusts it.

    Returns:
        The URL without the SSL parameters, and the `connect_args` for `create_async_engine`
    """
    url = make_url(database_url)
    sslmode = url.query.get("sslmode")
    sslrootcert = url.query.get("sslrootcert")
    url = url.difference_update_query(LIBPQ_SSL_PARAMETERS)

    if sslrootcert is not None:
        context = ssl.create_default_context(cafile=sslrootcert)
        context.check_hostname = sslmode == "verify-full"
        return (url, {"ssl": context})
    if sslmode is not None:
        return (url, {"ssl": sslmode})
    return (url, {})


def create_database_engine(database_url: str, pool_size: int = 5) -> AsyncEngine:
    """
    Create the process-wide engine.

    The engine's connection pool is bounded: `max_overflow=0` keeps it from opening more than
    `pool_size` connections, and requests wait for a free connection instead.
    """
    (url, connect_args) = split_ssl_options(database_url)
    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


async def check_database(engine: AsyncEngine) -> None:
    """
    Run `SELECT 1` on a pooled connection.

    Raises:
        DatabaseUnavailable: If a connection cannot be established or the query fails
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        raise DatabaseUnavailable(f"Failed to connect to database: {e}") from e


def render_config_url(url: URL) -> str:
    """Render a URL, password included, for an ini file value. configparser interpolates "%"."""
    return url.render_as_string(hide_password=False).replace("%", "%%")
