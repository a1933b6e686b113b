"""Store selection from settings."""

from student_home.config import Settings
from student_home.db.base import PropertyStore
from student_home.db.sqlite_store import SQLitePropertyStore
from student_home.db.supabase_store import SupabasePropertyStore


def create_store(settings: Settings, *, elevated: bool) -> PropertyStore:
    """Build the store the configured ``database_url`` points at.

    Raises:
        ConfigurationError: If the URL or a required key is missing.
    """
    credentials = settings.store_credentials(elevated=elevated)
    if settings.is_sqlite:
        return SQLitePropertyStore(
            settings.sqlite_path, delete_batch_size=settings.delete_batch_size
        )
    return SupabasePropertyStore(
        credentials.url,
        credentials.key,
        delete_batch_size=settings.delete_batch_size,
    )
