"""
Configuration Module for Pings

This module defines the configuration system for the Pings backend, using Pydantic for settings
validation and dependency injection through AppKeys.

The configuration follows these principles:
1. Environment-based configuration with development defaults where a default is safe
2. Strong validation and typing through Pydantic
3. Dependency injection pattern using aiohttp's app context

Only `DATABASE_URL` is required. A missing value raises a validation error when `Settings` is
constructed, which the CLI turns into a fatal startup error before any listener is bound.

Key configuration areas include:
- Listener address (host and port)
- Database connection and pool size
- OAuth client credentials for Google and CSH single sign-on
- Frontend bundle location and session cookie naming
- Monitoring and error reporting
"""

import logging
from importlib import resources
from typing import Dict, Final, Optional, TYPE_CHECKING

from aiohttp import ClientSession, web
from pydantic import AliasChoices, Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from edu.rit.csh.pings.app.assets import StaticBundle
from edu.rit.csh.pings.app.metrics import MetricsClient

if TYPE_CHECKING:
    from edu.rit.csh.pings.auth.clients import OAuthClient

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def default_static_dir() -> str:
    """Return the path of the frontend bundle shipped inside the package."""
    return str(resources.files("edu.rit.csh.pings") / "frontend" / "dist")


class Settings(BaseSettings):
    """
    Application settings for the Pings backend.

    Values are loaded from environment variables (and a `.env` file in the working directory,
    when present). Field names map to upper-case environment variables, so `database_url` is set
    with `DATABASE_URL`.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    debug: bool = False
    """
    Enable debug level logging and a verbose StatsD client.
    Set with DEBUG=true environment variable.
    """

    host: str = DEFAULT_HOST
    """
    Address the HTTP listener binds to, also used to build OAuth redirect URIs.
    Set with HOST environment variable.
    """

    port: int = DEFAULT_PORT
    """
    Port the HTTP listener binds to. Values that do not parse as a port fall back to 8080.
    Set with PORT environment variable.
    """

    database_url: PostgresDsn
    """
    PostgreSQL connection string (required, no default).
    `postgres://` and `postgresql://` URLs are rewritten to use the asyncpg driver.
    Set with DATABASE_URL environment variable.
    """

    database_pool_size: int = 5
    """
    Number of pooled database connections. The pool never grows past this size.
    Set with DATABASE_POOL_SIZE environment variable.
    """

    external_url: Optional[str] = None
    """
    Externally visible base URL, e.g. https://pings.csh.rit.edu.
    When unset, redirect URIs are built from http://{host}:{port}.
    Set with EXTERNAL_URL environment variable.
    """

    google_client_id: str = ""
    """Google OAuth client id. Set with GOOGLE_CLIENT_ID."""

    google_client_secret: str = ""
    """Google OAuth client secret. Set with GOOGLE_CLIENT_SECRET."""

    csh_client_id: str = ""
    """CSH SSO OAuth client id. Set with CSH_CLIENT_ID."""

    csh_client_secret: str = ""
    """CSH SSO OAuth client secret. Set with CSH_CLIENT_SECRET."""

    static_dir: str = Field(default_factory=default_static_dir)
    """
    Directory holding the prebuilt frontend bundle. Defaults to the bundle shipped with the package.
    Set with STATIC_DIR environment variable.
    """

    session_cookie_name: str = "pings_session"
    """Name of the encrypted session cookie. Set with SESSION_COOKIE_NAME."""

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    statsd_host: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("statsd_host", "telegraf_host"),
    )
    """
    StatsD/Telegraf host for metrics collection. Metrics are discarded when unset.
    Set with TELEGRAF_HOST or STATSD_HOST environment variables.
    """

    statsd_port: int = Field(
        default=8125,
        validation_alias=AliasChoices("statsd_port", "telegraf_port"),
    )
    """StatsD/Telegraf port. Set with TELEGRAF_PORT or STATSD_PORT environment variables."""

    @field_validator("port", mode="before")
    @classmethod
    def fallback_port(cls, v) -> int:
        """
        Parse the listener port, falling back to the default instead of failing.

        An unparsable or out of range port is a configuration mistake that should not keep the
        service from starting, so it is logged and replaced with 8080.
        """
        try:
            port = int(v)
        except (TypeError, ValueError):
            logger.warning("Invalid PORT %r, using %d", v, DEFAULT_PORT)
            return DEFAULT_PORT
        if port < 1 or port > 65535:
            logger.warning("PORT %d out of range, using %d", port, DEFAULT_PORT)
            return DEFAULT_PORT
        return port

    @field_validator("database_url", mode="before")
    @classmethod
    def use_asyncpg_driver(cls, v):
        """Rewrite plain PostgreSQL URLs to the asyncpg dialect used by the engine."""
        if isinstance(v, str):
            for prefix in ("postgres://", "postgresql://"):
                if v.startswith(prefix):
                    return "postgresql+asyncpg://" + v[len(prefix):]
        return v

    @property
    def base_url(self) -> str:
        """Externally visible base URL without a trailing slash."""
        if self.external_url:
            return self.external_url.rstrip("/")
        return f"http://{self.host}:{self.port}"


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

DatabaseAppKey: Final = web.AppKey("database", AsyncEngine)
"""AppKey for accessing the SQLAlchemy async database engine (and its connection pool)"""

DatabaseSessionMakerAppKey: Final = web.AppKey(
    "database_session_maker", async_sessionmaker[AsyncSession]
)
"""AppKey for accessing the SQLAlchemy async session factory"""

HttpSessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session used to talk to identity providers"""

OAuthClientsAppKey: Final = web.AppKey("oauth_clients", Dict[str, "OAuthClient"])
"""AppKey for accessing the OAuth clients, keyed by provider name"""

StaticBundleAppKey: Final = web.AppKey("static_bundle", StaticBundle)
"""AppKey for accessing the in-memory frontend bundle"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""
