"""
Database compatibility helpers for SQLite and PostgreSQL.
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_name(db: AsyncSession) -> str:
    return db.get_bind().dialect.name


def upsert(db: AsyncSession, model):
    """Dialect-specific INSERT supporting on_conflict_do_nothing/on_conflict_do_update."""
    if dialect_name(db) == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)
