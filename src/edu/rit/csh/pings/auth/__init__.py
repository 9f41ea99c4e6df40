"""
Identity Provider Integration

This package contains the OAuth 2.0 client configuration for the two identity providers Pings
accepts, Google and CSH single sign-on, and the normalization of their user information.

Key Components:
- clients.py: OAuth client configuration, authorization URLs, PKCE, code exchange and userinfo
- profile.py: Provider-independent user profile built from userinfo claims

Login Flow:
1. The login handler stores a random state and PKCE verifier in the session
2. The user is redirected to the provider's authorization endpoint
3. The provider redirects back to the callback with an authorization code
4. The callback checks the state, exchanges the code and fetches userinfo
5. The normalized profile is persisted and stored in the session
"""
