"""
Database Models

This package defines the database models for Pings using SQLAlchemy ORM.

Key Models:
- base.py: Base SQLAlchemy model with common type definitions
- users.py: Users who have signed in through one of the identity providers
- database.py: Engine construction and connectivity checks

The models use SQLAlchemy's async interface for non-blocking database operations
and include statements for common operations like upserts.
"""
