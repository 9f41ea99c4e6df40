import logging

from aiohttp import web

from edu.rit.csh.pings.app.config import DatabaseAppKey
from edu.rit.csh.pings.model.database import DatabaseUnavailable, check_database

logger = logging.getLogger(__name__)


async def handle_ping(request: web.Request):
    return web.json_response({"message": "pong"})


async def handle_ready(request: web.Request):
    try:
        await check_database(request.app[DatabaseAppKey])
    except DatabaseUnavailable:
        logger.exception("Readiness check failed")
        return web.json_response({"database": "unavailable"}, status=503)
    return web.json_response({"database": "ok"})
