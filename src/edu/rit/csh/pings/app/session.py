"""
Cookie Session Support

Sessions are stored entirely client-side, in a cookie encrypted and authenticated with a Fernet key.
The key is generated when the process starts and is never written anywhere, so restarting the
process invalidates every outstanding session. A cookie that cannot be decrypted is treated as no
session at all.

Session layout:
- `user`: the signed-in user (see `SessionUser`)
- `oauth`: the pending login (`provider`, `state`, `verifier`) between login and callback
"""

import logging
from typing import Any, Dict, Optional

from aiohttp_session import Session, session_middleware
from aiohttp_session.cookie_storage import EncryptedCookieStorage
from cryptography.fernet import Fernet
from pydantic import ValidationError

from edu.rit.csh.pings.auth.profile import SessionUser

logger = logging.getLogger(__name__)

USER_SESSION_KEY = "user"
OAUTH_SESSION_KEY = "oauth"


def generate_session_key() -> Fernet:
    """Create a fresh session key. Called once per process."""
    return Fernet(Fernet.generate_key())


def create_session_storage(
    session_key: Fernet, cookie_name: str, secure: Optional[bool] = None
) -> EncryptedCookieStorage:
    return EncryptedCookieStorage(
        session_key,
        cookie_name=cookie_name,
        path="/",
        httponly=True,
        secure=secure,
        samesite="Lax",
    )


def create_session_middleware(
    session_key: Fernet, cookie_name: str, secure: Optional[bool] = None
):
    return session_middleware(create_session_storage(session_key, cookie_name, secure))


def get_session_user(session: Session) -> Optional[SessionUser]:
    """Return the signed-in user, or None if the session holds no valid user."""
    data = session.get(USER_SESSION_KEY)
    if data is None:
        return None
    try:
        return SessionUser.model_validate(data)
    except ValidationError:
        logger.warning("Discarding malformed user in session")
        del session[USER_SESSION_KEY]
        return None


def set_session_user(session: Session, user: SessionUser) -> None:
    session[USER_SESSION_KEY] = user.model_dump()


def set_pending_login(session: Session, provider: str, state: str, verifier: str) -> None:
    session[OAUTH_SESSION_KEY] = {
        "provider": provider,
        "state": state,
        "verifier": verifier,
    }


def pop_pending_login(session: Session) -> Optional[Dict[str, Any]]:
    """Remove and return the pending login, so a callback can only be completed once."""
    pending = session.get(OAUTH_SESSION_KEY)
    if pending is None:
        return None
    del session[OAUTH_SESSION_KEY]
    if not isinstance(pending, dict):
        return None
    return pending
