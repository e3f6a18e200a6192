"""Storage layer: asyncpg pool and schema bootstrap."""

from vitalwatch.storage.database import Database, close_database, get_database

__all__ = ["Database", "close_database", "get_database"]
