import logging
from time import time
from typing import Optional

import aiohttp
from aiohttp import web
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from edu.rit.csh.pings.app.assets import StaticBundle
from edu.rit.csh.pings.app.config import (
    DatabaseAppKey,
    DatabaseSessionMakerAppKey,
    HttpSessionAppKey,
    MetricsClientAppKey,
    OAuthClientsAppKey,
    Settings,
    SettingsAppKey,
    StaticBundleAppKey,
)
from edu.rit.csh.pings.app.handlers.api import api_routes
from edu.rit.csh.pings.app.handlers.static import handle_asset, handle_index
from edu.rit.csh.pings.app.metrics import MetricsClient, create_metrics_client
from edu.rit.csh.pings.app.session import (
    create_session_middleware,
    generate_session_key,
)
from edu.rit.csh.pings.auth.clients import get_clients
from edu.rit.csh.pings.model.database import (
    DatabaseUnavailable,
    check_database,
    create_database_engine,
)

logger = logging.getLogger(__name__)


def _session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def app_resources(app: web.Application):
    """
    Create the shared resources on startup and release them on cleanup.

    aiohttp runs this before any site is bound, so a database that cannot be reached aborts the
    process before it starts listening.
    """
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    owns_engine = DatabaseAppKey not in app
    if owns_engine:
        engine = create_database_engine(
            str(settings.database_url), settings.database_pool_size
        )
        try:
            await check_database(engine)
        except DatabaseUnavailable:
            logger.critical("Failed to create pool")
            await engine.dispose()
            raise
        app[DatabaseAppKey] = engine
        app[DatabaseSessionMakerAppKey] = _session_maker(engine)

    app[HttpSessionAppKey] = aiohttp.ClientSession()

    await app[MetricsClientAppKey].connect()

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[HttpSessionAppKey].close()
    await app[MetricsClientAppKey].close()
    if owns_engine:
        await app[DatabaseAppKey].dispose()


@web.middleware
async def logging_middleware(request: web.Request, handler):
    start_time: float = time()
    response_status_code = 500

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    finally:
        logger.info(
            '%s "%s %s" %s %.3fms',
            request.remote,
            request.method,
            request.path,
            response_status_code,
            (time() - start_time) * 1000,
        )


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    # Frontend paths are unbounded, so they share one tag value.
    request_path = request.path if request.path.startswith("/api/") else "static"

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "pings.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "pings.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "pings.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


def create_app(
    settings: Settings,
    session_key: Fernet,
    engine: Optional[AsyncEngine] = None,
    static_bundle: Optional[StaticBundle] = None,
    metrics_client: Optional[MetricsClient] = None,
) -> web.Application:
    """
    Compose the application: shared state, middleware chain and routes.

    Args:
        settings: Application settings
        session_key: Key for the encrypted session cookie
        engine: An existing database engine. When omitted, one is created and checked on startup
        static_bundle: The frontend bundle. When omitted, it is loaded from `settings.static_dir`
        metrics_client: Metrics client. When omitted, one is built from settings
    """
    app = web.Application(
        middlewares=[
            logging_middleware,
            statsd_middleware,
            sentry_middleware,
            create_session_middleware(
                session_key,
                settings.session_cookie_name,
                secure=settings.base_url.startswith("https://"),
            ),
        ]
    )

    app[SettingsAppKey] = settings

    if static_bundle is None:
        static_bundle = StaticBundle.load(settings.static_dir)
    app[StaticBundleAppKey] = static_bundle

    (google_client, csh_client) = get_clients(settings)
    app[OAuthClientsAppKey] = {
        google_client.name: google_client,
        csh_client.name: csh_client,
    }

    if metrics_client is None:
        metrics_client = create_metrics_client(
            settings.statsd_host, settings.statsd_port, settings.debug
        )
    app[MetricsClientAppKey] = metrics_client

    if engine is not None:
        app[DatabaseAppKey] = engine
        app[DatabaseSessionMakerAppKey] = _session_maker(engine)

    app.add_routes(api_routes())

    app.add_routes(
        [
            web.get("/", handle_index),
            web.get("/about", handle_index),
            web.get("/{filename:.*}", handle_asset),
        ]
    )

    app.cleanup_ctx.append(app_resources)

    return app


async def start_web_server(settings: Optional[Settings] = None) -> web.Application:
    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=True,
            integrations=[AioHttpIntegration()],
        )

    session_key = generate_session_key()

    logger.info("Starting server at http://%s:%s", settings.host, settings.port)
    return create_app(settings, session_key)
