"""Persistence gateway for properties and their images."""

from student_home.db.base import BatchResult, PropertyStore, RowError, UpsertResult
from student_home.db.factory import create_store
from student_home.db.sqlite_store import SQLitePropertyStore
from student_home.db.supabase_store import SupabasePropertyStore

__all__ = [
    "BatchResult",
    "PropertyStore",
    "RowError",
    "SQLitePropertyStore",
    "SupabasePropertyStore",
    "UpsertResult",
    "create_store",
]
