import json

from aiohttp import web
from aiohttp_session import get_session

from edu.rit.csh.pings.app.session import get_session_user


async def handle_me(request: web.Request):
    session = await get_session(request)
    user = get_session_user(session)
    if user is None:
        raise web.HTTPUnauthorized(
            body=json.dumps({"error": "Not Authorized"}),
            content_type="application/json",
        )
    return web.json_response(user.model_dump())
