"""
Frontend Asset Handlers

- GET / and GET /about - the bundle's index document
- GET /{filename} - the bundle file at exactly that path, or a plain-text 404
"""

from aiohttp import web

from edu.rit.csh.pings.app.assets import INDEX_DOCUMENT, content_type_for
from edu.rit.csh.pings.app.config import StaticBundleAppKey

NOT_FOUND_TEXT = "File not found"


def _file_response(path: str, content) -> web.Response:
    if content is None:
        return web.Response(status=404, text=NOT_FOUND_TEXT)
    return web.Response(body=content, content_type=content_type_for(path))


async def handle_index(request: web.Request):
    bundle = request.app[StaticBundleAppKey]
    return _file_response(INDEX_DOCUMENT, bundle.index)


async def handle_asset(request: web.Request):
    bundle = request.app[StaticBundleAppKey]
    file_path = request.match_info["filename"]
    return _file_response(file_path, bundle.get(file_path))
