"""
Pings Application Layer

This package implements the web application layer for Pings using the aiohttp framework.

Key Components:
- cli.py: Entry point for running the application
- server.py: Application composition, middleware and resource lifecycle
- config.py: Configuration management using Pydantic settings
- session.py: Encrypted cookie session setup and helpers
- assets.py: In-memory frontend bundle and content types
- metrics.py: Metrics client abstraction
- handlers/: Request handlers for the `/api` routes and the frontend assets
- util/: Operator utilities

It provides the following main endpoints:
- Authentication endpoints (/api/auth/*)
- Heartbeat and readiness endpoints (/api/ping, /api/ready)
- User endpoints (/api/me, /api/providers)
- Frontend assets (/, /about, /{filename})
"""
