"""
API Routes

All JSON endpoints live under a single path prefix. They are registered ahead of the frontend's
catch-all route so that the catch-all never shadows them.
"""

from typing import List

from aiohttp import web

from edu.rit.csh.pings.app.handlers.auth import (
    handle_callback,
    handle_login,
    handle_logout,
    handle_providers,
)
from edu.rit.csh.pings.app.handlers.pings import handle_ping, handle_ready
from edu.rit.csh.pings.app.handlers.users import handle_me

API_PREFIX = "/api"


def api_routes(prefix: str = API_PREFIX) -> List[web.RouteDef]:
    return [
        web.get(f"{prefix}/ping", handle_ping),
        web.get(f"{prefix}/ready", handle_ready),
        web.get(f"{prefix}/me", handle_me),
        web.get(f"{prefix}/providers", handle_providers),
        web.get(f"{prefix}/auth/logout", handle_logout),
        web.post(f"{prefix}/auth/logout", handle_logout),
        web.get(f"{prefix}/auth/{{provider}}", handle_login),
        web.get(f"{prefix}/auth/{{provider}}/callback", handle_callback),
    ]
