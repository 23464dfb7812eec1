"""Shared metadata and column helpers for all tables."""

from uuid import UUID, uuid4

from sqlalchemy import MetaData

# Single metadata so cross-table foreign keys resolve for create_all and Alembic
metadata = MetaData()


def new_uuid() -> UUID:
    """Generate primary keys client-side so every backend behaves the same."""
    return uuid4()
