"""Infra layer utilities (SQLite storage)."""

from .storage import METADATA_FIELDS, SQLiteManager, SQLiteStore

__all__ = ["METADATA_FIELDS", "SQLiteManager", "SQLiteStore"]
