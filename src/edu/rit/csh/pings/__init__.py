"""
Pings - CSH Pings backend

This package implements the backend for Pings: a small web service that signs members in with
Google or the CSH single sign-on provider, keeps them signed in with an encrypted cookie session,
exposes a JSON API under `/api`, and serves the prebuilt single-page frontend for every other path.

Key Components:
- app: Web application layer with configuration, middleware, request handlers and server bootstrap
- auth: OAuth 2.0 client configuration for the two identity providers and profile normalization
- model: Database models and statements for persisted users
- frontend: The prebuilt frontend bundle served by the static asset handlers

Request Pipeline:
1. Logging, metrics and error reporting middleware
2. Encrypted cookie session middleware
3. Dispatch to the `/api` routes, or to the static asset catch-all
"""
