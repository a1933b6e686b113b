"""SQLite backend for the property store."""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from student_home.db.base import PropertyStore, Table
from student_home.db.row_mappers import (
    IMAGE_COLUMNS,
    PROPERTY_COLUMNS,
    image_to_row,
    property_to_row,
    rows_to_images,
    rows_to_properties,
)
from student_home.errors import StoreError
from student_home.logging import get_logger
from student_home.models import Property, PropertyImage

logger = get_logger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS properties (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL CHECK (title <> ''),
        price REAL NOT NULL DEFAULT 0 CHECK (price >= 0),
        price_type TEXT NOT NULL DEFAULT 'weekly'
            CHECK (price_type IN ('weekly', 'monthly', 'yearly')),
        location TEXT NOT NULL,
        full_address TEXT,
        postcode TEXT,
        bedrooms INTEGER NOT NULL DEFAULT 1 CHECK (bedrooms >= 1),
        bathrooms INTEGER NOT NULL DEFAULT 1 CHECK (bathrooms >= 1),
        property_type TEXT NOT NULL DEFAULT 'flat'
            CHECK (property_type IN ('flat', 'house', 'studio', 'room')),
        furnished INTEGER NOT NULL DEFAULT 1,
        available INTEGER NOT NULL DEFAULT 1,
        description TEXT,
        landlord_name TEXT,
        features TEXT NOT NULL DEFAULT '[]',
        source TEXT NOT NULL CHECK (source <> ''),
        source_url TEXT,
        scraped_at TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS property_images (
        id TEXT PRIMARY KEY,
        property_id TEXT NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
        image_url TEXT NOT NULL,
        alt_text TEXT,
        is_primary INTEGER NOT NULL DEFAULT 0,
        image_order INTEGER NOT NULL DEFAULT 0 CHECK (image_order >= 0),
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_properties_location ON properties(location)",
    "CREATE INDEX IF NOT EXISTS idx_properties_price ON properties(price)",
    "CREATE INDEX IF NOT EXISTS idx_properties_bedrooms ON properties(bedrooms)",
    "CREATE INDEX IF NOT EXISTS idx_properties_available ON properties(available)",
    "CREATE INDEX IF NOT EXISTS idx_property_images_property_id ON property_images(property_id)",
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SQLitePropertyStore(PropertyStore):
    """Local SQLite store with the same schema as the hosted database."""

    def __init__(self, db_path: str, *, delete_batch_size: int = 50) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite file, or ":memory:" for in-memory.
            delete_batch_size: Ids per DELETE statement.
        """
        super().__init__(delete_batch_size=delete_batch_size)
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def _get_connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA foreign_keys=ON")
            await self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    async def initialize(self) -> None:
        conn = await self._get_connection()
        for statement in _SCHEMA:
            await conn.execute(statement)
        await conn.commit()
        logger.info("database_initialized", db_path=self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, params)
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(str(e)) from e
        return cursor.rowcount

    async def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, params)
            return list(await cursor.fetchall())
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def _scalar(self, sql: str) -> int:
        rows = await self._fetchall(sql)
        return int(rows[0][0])

    async def _write_property(self, prop: Property) -> Property:
        now = _now()
        row = property_to_row(prop)
        row["id"] = row["id"] or str(uuid.uuid4())
        row["features"] = json.dumps(row["features"])
        row["furnished"] = int(row["furnished"])
        row["available"] = int(row["available"])
        row["created_at"] = row["created_at"] or now
        row["updated_at"] = now

        placeholders = ", ".join("?" for _ in PROPERTY_COLUMNS)
        updates = ", ".join(
            f"{col} = excluded.{col}" for col in PROPERTY_COLUMNS if col not in ("id", "created_at")
        )
        await self._execute(
            f"""
            INSERT INTO properties ({", ".join(PROPERTY_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET {updates}
            """,
            [row[col] for col in PROPERTY_COLUMNS],
        )
        return prop.model_copy(
            update={
                "id": row["id"],
                "created_at": datetime.fromisoformat(row["created_at"]),
                "updated_at": datetime.fromisoformat(now),
            }
        )

    async def _write_images(self, images: Sequence[PropertyImage]) -> int:
        now = _now()
        rows = []
        for image in images:
            row = image_to_row(image)
            row["id"] = row["id"] or str(uuid.uuid4())
            row["is_primary"] = int(row["is_primary"])
            row["created_at"] = row["created_at"] or now
            rows.append([row[col] for col in IMAGE_COLUMNS])

        conn = await self._get_connection()
        try:
            await conn.executemany(
                f"""
                INSERT INTO property_images ({", ".join(IMAGE_COLUMNS)})
                VALUES ({", ".join("?" for _ in IMAGE_COLUMNS)})
                """,
                rows,
            )
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(str(e)) from e
        return len(rows)

    async def _delete_ids(self, table: Table, ids: Sequence[str]) -> int:
        placeholders = ", ".join("?" for _ in ids)
        return await self._execute(f"DELETE FROM {table} WHERE id IN ({placeholders})", list(ids))

    async def _update_image_url(self, image_id: str, image_url: str) -> None:
        updated = await self._execute(
            "UPDATE property_images SET image_url = ? WHERE id = ?", (image_url, image_id)
        )
        if updated == 0:
            raise StoreError(f"image {image_id} not found")

    async def list_properties(self) -> list[Property]:
        rows = await self._fetchall("SELECT * FROM properties ORDER BY created_at, id")
        return rows_to_properties(rows)

    async def list_images(self) -> list[PropertyImage]:
        rows = await self._fetchall(
            "SELECT * FROM property_images ORDER BY property_id, image_order, id"
        )
        return rows_to_images(rows)

    async def list_properties_missing_images(self) -> set[str]:
        rows = await self._fetchall(
            """
            SELECT p.id FROM properties p
            WHERE NOT EXISTS (SELECT 1 FROM property_images i WHERE i.property_id = p.id)
            """
        )
        return {row["id"] for row in rows}

    async def delete_orphaned_images(self) -> int:
        deleted = await self._execute(
            "DELETE FROM property_images WHERE property_id NOT IN (SELECT id FROM properties)"
        )
        if deleted:
            logger.info("orphaned_images_deleted", count=deleted)
        return deleted

    async def clear_all(self) -> None:
        await self._execute("DELETE FROM property_images")
        await self._execute("DELETE FROM properties")
        logger.info("store_cleared", db_path=self.db_path)

    async def count_properties(self) -> int:
        return await self._scalar("SELECT COUNT(*) FROM properties")

    async def count_images(self) -> int:
        return await self._scalar("SELECT COUNT(*) FROM property_images")

    async def count_properties_with_images(self) -> int:
        return await self._scalar(
            "SELECT COUNT(*) FROM properties p "
            "WHERE EXISTS (SELECT 1 FROM property_images i WHERE i.property_id = p.id)"
        )

    async def sample_properties(self, limit: int) -> list[Property]:
        rows = await self._fetchall(
            "SELECT * FROM properties ORDER BY created_at, id LIMIT ?", (limit,)
        )
        return rows_to_properties(rows)
