"""
OAuth 2.0 Client Configuration

This module builds the OAuth 2.0 clients for the two identity providers and implements the parts of
the Authorization Code Grant (RFC 6749) with PKCE (RFC 7636) that the callback handler needs.

Both providers are plain confidential clients: the client secret is sent in the token request body
and the access token is only used once, to read the user's profile from the userinfo endpoint.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple, TYPE_CHECKING
from urllib.parse import urlencode

from aiohttp import ClientError, ClientSession

if TYPE_CHECKING:
    from edu.rit.csh.pings.app.config import Settings

logger = logging.getLogger(__name__)

GOOGLE = "google"
CSH = "csh"

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

CSH_REALM_URL = "https://sso.csh.rit.edu/auth/realms/csh/protocol/openid-connect"
CSH_AUTHORIZE_URL = f"{CSH_REALM_URL}/auth"
CSH_TOKEN_URL = f"{CSH_REALM_URL}/token"
CSH_USERINFO_URL = f"{CSH_REALM_URL}/userinfo"


class OAuthError(Exception):
    """
    Exception raised when a login cannot be completed.

    The static constructors carry stable error codes so that failures can be found in logs
    without matching on free-form text.
    """

    @staticmethod
    def state_mismatch() -> "OAuthError":
        """The callback state does not match the state stored in the session."""
        return OAuthError("error-oauth-1000 State mismatch")

    @staticmethod
    def missing_code() -> "OAuthError":
        """The callback did not include an authorization code."""
        return OAuthError("error-oauth-1001 Missing authorization code")

    @staticmethod
    def provider_error(error: str) -> "OAuthError":
        """The provider redirected back with an error instead of a code."""
        return OAuthError(f"error-oauth-1002 Provider returned error: {error}")

    @staticmethod
    def token_exchange_failed(status: int) -> "OAuthError":
        """The token endpoint rejected the authorization code."""
        return OAuthError(f"error-oauth-1003 Token exchange failed with status {status}")

    @staticmethod
    def missing_access_token() -> "OAuthError":
        """The token response did not include an access token."""
        return OAuthError("error-oauth-1004 No access token")

    @staticmethod
    def userinfo_failed(status: int) -> "OAuthError":
        """The userinfo endpoint rejected the access token."""
        return OAuthError(f"error-oauth-1005 Userinfo request failed with status {status}")

    @staticmethod
    def invalid_userinfo(msg: str = "") -> "OAuthError":
        """The userinfo response is missing required claims."""
        return OAuthError(f"error-oauth-1006 Invalid userinfo: {msg}")

    @staticmethod
    def unreachable(msg: str = "") -> "OAuthError":
        """The provider could not be reached."""
        return OAuthError(f"error-oauth-1007 Provider unreachable: {msg}")


def generate_pkce_verifier() -> Tuple[str, str]:
    """
    Generate PKCE (Proof Key for Code Exchange) verifier and challenge.

    Returns:
        Tuple[str, str]: A tuple containing (pkce_verifier, pkce_challenge)
        - pkce_verifier: The secret verifier that will be sent in the token request
        - pkce_challenge: The S256 challenge derived from the verifier, sent in the
          authorization request
    """
    pkce_token = secrets.token_urlsafe(80)

    hashed = hashlib.sha256(pkce_token.encode("ascii")).digest()
    encoded = base64.urlsafe_b64encode(hashed)
    pkce_challenge = encoded.decode("ascii").rstrip("=")
    return (pkce_token, pkce_challenge)


def generate_state() -> str:
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class OAuthClient:
    """
    Registered OAuth 2.0 client for one identity provider.

    Attributes:
        name: Provider name, also the path segment of its login and callback routes
        client_id: This application's client identifier at the provider
        client_secret: This application's client secret at the provider
        authorize_url: The provider's authorization endpoint
        token_url: The provider's token endpoint
        userinfo_url: The provider's OpenID Connect userinfo endpoint
        redirect_uri: The callback URL registered with the provider
        scopes: Scopes requested in the authorization request
    """

    name: str
    client_id: str
    client_secret: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    redirect_uri: str
    scopes: Sequence[str] = ("openid", "email", "profile")

    def __repr__(self) -> str:
        return f"OAuthClient(name={self.name!r}, client_id={self.client_id!r})"

    def authorization_url(self, state: str, code_challenge: str) -> str:
        """Build the URL the user is redirected to in order to sign in."""
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "scope": " ".join(self.scopes),
                "state": state,
                "code_challenge": code_challenge,
                "code_challenge_method": "S256",
            }
        )
        return f"{self.authorize_url}?{query}"

    async def exchange_code(
        self, http_session: ClientSession, code: str, code_verifier: str
    ) -> Dict[str, Any]:
        """
        Exchange an authorization code for tokens.

        Args:
            http_session: Shared aiohttp client session
            code: The authorization code from the callback
            code_verifier: The PKCE verifier stored when the login started

        Returns:
            The decoded token response, which always contains `access_token`

        Raises:
            OAuthError: If the provider rejects the code or returns no access token
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code_verifier": code_verifier,
        }
        try:
            async with http_session.post(
                self.token_url, data=data, headers={"Accept": "application/json"}
            ) as resp:
                if resp.status != 200:
                    logger.warning(
                        "Token exchange with %s failed: %s %s",
                        self.name,
                        resp.status,
                        await resp.text(),
                    )
                    raise OAuthError.token_exchange_failed(resp.status)
                token_response = await resp.json(content_type=None)
        except ClientError as e:
            raise OAuthError.unreachable(str(e)) from e

        if not isinstance(token_response, dict) or not token_response.get("access_token"):
            raise OAuthError.missing_access_token()
        return token_response

    async def fetch_userinfo(
        self, http_session: ClientSession, access_token: str
    ) -> Dict[str, Any]:
        """Read the signed-in user's claims from the userinfo endpoint."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            async with http_session.get(self.userinfo_url, headers=headers) as resp:
                if resp.status != 200:
                    raise OAuthError.userinfo_failed(resp.status)
                claims = await resp.json(content_type=None)
        except ClientError as e:
            raise OAuthError.unreachable(str(e)) from e

        if not isinstance(claims, dict):
            raise OAuthError.invalid_userinfo("expected a JSON object")
        return claims


def redirect_uri_for(base_url: str, name: str) -> str:
    return f"{base_url}/api/auth/{name}/callback"


def get_clients(settings: "Settings") -> Tuple[OAuthClient, OAuthClient]:
    """
    Build the Google and CSH OAuth clients.

    Redirect URIs are derived from the externally visible base URL, which defaults to
    `http://{host}:{port}`.

    Returns:
        Tuple of (google_client, csh_client)
    """
    base_url = settings.base_url

    if not settings.google_client_id:
        logger.warning("GOOGLE_CLIENT_ID is not set, Google sign in will fail")
    if not settings.csh_client_id:
        logger.warning("CSH_CLIENT_ID is not set, CSH sign in will fail")

    google_client = OAuthClient(
        name=GOOGLE,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        authorize_url=GOOGLE_AUTHORIZE_URL,
        token_url=GOOGLE_TOKEN_URL,
        userinfo_url=GOOGLE_USERINFO_URL,
        redirect_uri=redirect_uri_for(base_url, GOOGLE),
        scopes=("openid", "email", "profile"),
    )

    csh_client = OAuthClient(
        name=CSH,
        client_id=settings.csh_client_id,
        client_secret=settings.csh_client_secret,
        authorize_url=CSH_AUTHORIZE_URL,
        token_url=CSH_TOKEN_URL,
        userinfo_url=CSH_USERINFO_URL,
        redirect_uri=redirect_uri_for(base_url, CSH),
        scopes=("openid", "profile", "email"),
    )

    return (google_client, csh_client)
