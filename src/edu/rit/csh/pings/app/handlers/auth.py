"""
Sign In Handlers

This module implements the request handlers for signing in with Google or CSH single sign-on.

The handlers in this module provide the following endpoints:
- GET /api/auth/{provider} - Start a login and redirect to the provider
- GET /api/auth/{provider}/callback - Complete a login from the provider's redirect
- GET|POST /api/auth/logout - Sign out by invalidating the session
- GET /api/providers - List the available providers and their login paths
"""

import json
import logging
from typing import Optional

from aiohttp import web
from aiohttp_session import get_session
import sentry_sdk

from edu.rit.csh.pings.app.config import (
    DatabaseSessionMakerAppKey,
    HttpSessionAppKey,
    MetricsClientAppKey,
    OAuthClientsAppKey,
)
from edu.rit.csh.pings.app.session import (
    pop_pending_login,
    set_pending_login,
    set_session_user,
)
from edu.rit.csh.pings.auth.clients import (
    OAuthClient,
    OAuthError,
    generate_pkce_verifier,
    generate_state,
)
from edu.rit.csh.pings.auth.profile import SessionUser, profile_from_userinfo
from edu.rit.csh.pings.model.users import save_user

logger = logging.getLogger(__name__)

LOGIN_DESTINATION = "/"


def _oauth_client(request: web.Request) -> OAuthClient:
    provider = request.match_info["provider"]
    oauth_client = request.app[OAuthClientsAppKey].get(provider)
    if oauth_client is None:
        raise web.HTTPNotFound(
            body=json.dumps({"error": f"Unknown provider: {provider}"}),
            content_type="application/json",
        )
    return oauth_client


async def handle_login(request: web.Request):
    """
    Start a login with the provider named in the path.

    A random state and PKCE verifier are stored in the session and the user is redirected to
    the provider's authorization endpoint. Starting a new login replaces any pending one.

    Raises:
        HTTPFound: To redirect to the provider
        HTTPNotFound: If the provider is unknown
    """
    oauth_client = _oauth_client(request)
    session = await get_session(request)

    state = generate_state()
    (pkce_verifier, pkce_challenge) = generate_pkce_verifier()
    set_pending_login(session, oauth_client.name, state, pkce_verifier)

    request.app[MetricsClientAppKey].increment(
        "pings.auth.login.start", 1, tag_dict={"provider": oauth_client.name}
    )
    raise web.HTTPFound(oauth_client.authorization_url(state, pkce_challenge))


async def handle_callback(request: web.Request):
    """
    Complete a login from the provider's redirect.

    Query Parameters:
        state: Must match the state stored when the login started
        code: Authorization code to exchange for tokens
        error: Set by the provider instead of `code` when the user declined

    Flow:
        1. Take the pending login out of the session, so the callback cannot be replayed
        2. Check the provider and state against the pending login
        3. Exchange the code and read the user's profile
        4. Record the sign in and store the user in the session
        5. Redirect to the frontend

    Raises:
        HTTPFound: To redirect to the frontend after signing in
        HTTPBadRequest: If the login cannot be completed
    """
    oauth_client = _oauth_client(request)
    session = await get_session(request)
    metrics_client = request.app[MetricsClientAppKey]

    pending = pop_pending_login(session)
    state: Optional[str] = request.query.get("state", None)
    code: Optional[str] = request.query.get("code", None)
    error: Optional[str] = request.query.get("error", None)

    try:
        if (
            pending is None
            or pending.get("provider") != oauth_client.name
            or state is None
            or state != pending.get("state")
        ):
            raise OAuthError.state_mismatch()
        if error is not None:
            raise OAuthError.provider_error(error)
        if code is None:
            raise OAuthError.missing_code()

        http_session = request.app[HttpSessionAppKey]
        token_response = await oauth_client.exchange_code(
            http_session, code, pending["verifier"]
        )
        claims = await oauth_client.fetch_userinfo(
            http_session, token_response["access_token"]
        )
        profile = profile_from_userinfo(oauth_client.name, claims)
    except OAuthError as e:
        logger.warning("Login with %s failed: %s", oauth_client.name, e)
        sentry_sdk.capture_exception(e)
        metrics_client.increment(
            "pings.auth.login.failure", 1, tag_dict={"provider": oauth_client.name}
        )
        raise web.HTTPBadRequest(
            body=json.dumps({"error": str(e)}),
            content_type="application/json",
        )

    guid = await save_user(request.app[DatabaseSessionMakerAppKey], profile)

    session_user = SessionUser(guid=guid, **profile.model_dump())
    set_session_user(session, session_user)

    logger.info("User %s signed in with %s", guid, oauth_client.name)
    metrics_client.increment(
        "pings.auth.login.success", 1, tag_dict={"provider": oauth_client.name}
    )
    raise web.HTTPFound(LOGIN_DESTINATION)


async def handle_logout(request: web.Request):
    session = await get_session(request)
    session.invalidate()
    return web.json_response({"logged_out": True})


async def handle_providers(request: web.Request):
    return web.json_response(
        {
            "providers": [
                {"name": name, "login": f"/api/auth/{name}"}
                for name in request.app[OAuthClientsAppKey]
            ]
        }
    )
