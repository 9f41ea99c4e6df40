"""Provider-independent user profiles built from OpenID Connect userinfo claims."""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from edu.rit.csh.pings.auth.clients import CSH, OAuthError


class UserProfile(BaseModel):
    """The subset of userinfo claims Pings keeps about a user."""

    provider: str
    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None


class SessionUser(BaseModel):
    """A signed-in user as stored in the session cookie."""

    guid: str
    provider: str
    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None


def _string_claim(claims: Dict[str, Any], name: str) -> Optional[str]:
    value = claims.get(name)
    if value is not None and not isinstance(value, str):
        raise OAuthError.invalid_userinfo(f"{name} is not a string")
    return value


def profile_from_userinfo(provider: str, claims: Dict[str, Any]) -> UserProfile:
    """
    Normalize userinfo claims from either provider.

    Google and the CSH Keycloak realm both return standard OpenID Connect claims. CSH also returns
    `preferred_username`, the member's CSH username, which is kept as `username`. For Google the
    username is the local part of the email address.

    Raises:
        OAuthError: If the claims have no `sub`, or a profile claim is not a string
    """
    subject = claims.get("sub")
    if not subject:
        raise OAuthError.invalid_userinfo("missing sub")

    email = _string_claim(claims, "email")
    name = _string_claim(claims, "name")
    given_name = _string_claim(claims, "given_name")
    family_name = _string_claim(claims, "family_name")
    if name is None and (given_name or family_name):
        name = " ".join(part for part in (given_name, family_name) if part)

    if provider == CSH:
        username = _string_claim(claims, "preferred_username")
    else:
        username = email.split("@", 1)[0] if email else None

    return UserProfile(
        provider=provider,
        subject=str(subject),
        email=email,
        name=name,
        username=username,
    )
