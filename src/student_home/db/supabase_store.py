"""Supabase (PostgREST) backend for the property store."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from student_home.db.base import PropertyStore, Table
from student_home.db.row_mappers import (
    image_to_row,
    property_to_row,
    row_to_property,
    rows_to_images,
    rows_to_properties,
)
from student_home.errors import StoreError
from student_home.logging import get_logger
from student_home.models import Property, PropertyImage

logger = get_logger(__name__)

T = TypeVar("T")

# PostgREST caps a single response; larger tables are read page by page.
PAGE_SIZE = 1000

# Bulk deletes need a filter; no row ever has the nil UUID.
_NIL_UUID = "00000000-0000-0000-0000-000000000000"


def _compact(row: dict[str, Any]) -> dict[str, Any]:
    """Drop unset keys so the database applies its own defaults."""
    return {k: v for k, v in row.items() if v is not None}


class SupabasePropertyStore(PropertyStore):
    """Store backed by the hosted Supabase project.

    The supabase client is synchronous; every call runs in a worker thread so
    the event loop keeps serving probes and fetches.
    """

    def __init__(
        self,
        url: str,
        key: str,
        *,
        delete_batch_size: int = 50,
        client: Client | None = None,
    ) -> None:
        super().__init__(delete_batch_size=delete_batch_size)
        self._url = url
        self._key = key
        self._client = client

    async def initialize(self) -> None:
        if self._client is None:
            self._client = create_client(self._url, self._key)
        logger.info("supabase_connected", url=self._url)

    async def close(self) -> None:
        self._client = None

    @property
    def client(self) -> Client:
        if self._client is None:
            raise StoreError("store is not initialized")
        return self._client

    async def _run(self, call: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(call)
        except (APIError, httpx.HTTPError) as e:
            raise StoreError(str(e)) from e

    async def _select_all(self, table: Table, columns: str = "*") -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            end = start + PAGE_SIZE - 1
            response = await self._run(
                lambda start=start, end=end: self.client.table(table)
                .select(columns)
                .order("id")
                .range(start, end)
                .execute()
            )
            rows.extend(response.data)
            if len(response.data) < PAGE_SIZE:
                return rows
            start += PAGE_SIZE

    async def _count(self, table: Table) -> int:
        response = await self._run(
            lambda: self.client.table(table).select("id", count="exact").limit(1).execute()
        )
        return response.count or 0

    async def _write_property(self, prop: Property) -> Property:
        row = _compact(property_to_row(prop))
        if prop.id is None:
            response = await self._run(
                lambda: self.client.table("properties").insert(row).execute()
            )
        else:
            response = await self._run(
                lambda: self.client.table("properties").upsert(row).execute()
            )
        if not response.data:
            raise StoreError(f"insert of {prop.title!r} returned no row")
        return row_to_property(response.data[0])

    async def _write_images(self, images: Sequence[PropertyImage]) -> int:
        rows = [_compact(image_to_row(image)) for image in images]
        response = await self._run(
            lambda: self.client.table("property_images").insert(rows).execute()
        )
        return len(response.data)

    async def _delete_ids(self, table: Table, ids: Sequence[str]) -> int:
        chunk = list(ids)
        response = await self._run(
            lambda: self.client.table(table).delete().in_("id", chunk).execute()
        )
        return len(response.data)

    async def _update_image_url(self, image_id: str, image_url: str) -> None:
        response = await self._run(
            lambda: self.client.table("property_images")
            .update({"image_url": image_url})
            .eq("id", image_id)
            .execute()
        )
        if not response.data:
            raise StoreError(f"image {image_id} not found")

    async def list_properties(self) -> list[Property]:
        return rows_to_properties(await self._select_all("properties"))

    async def list_images(self) -> list[PropertyImage]:
        rows = await self._select_all("property_images")
        rows.sort(key=lambda r: (r["property_id"], r.get("image_order") or 0, r["id"]))
        return rows_to_images(rows)

    async def _property_ids(self) -> set[str]:
        return {row["id"] for row in await self._select_all("properties", "id")}

    async def _image_owner_ids(self) -> set[str]:
        rows = await self._select_all("property_images", "id,property_id")
        return {row["property_id"] for row in rows}

    async def list_properties_missing_images(self) -> set[str]:
        property_ids = await self._property_ids()
        return property_ids - await self._image_owner_ids()

    async def delete_orphaned_images(self) -> int:
        property_ids = await self._property_ids()
        orphans = [
            row["id"]
            for row in await self._select_all("property_images", "id,property_id")
            if row["property_id"] not in property_ids
        ]
        if not orphans:
            return 0
        result = await self.delete_images(orphans)
        logger.info("orphaned_images_deleted", count=result.succeeded, failed=result.failed)
        return result.succeeded

    async def clear_all(self) -> None:
        for table in ("property_images", "properties"):
            await self._run(
                lambda table=table: self.client.table(table).delete().neq("id", _NIL_UUID).execute()
            )
        logger.info("store_cleared", url=self._url)

    async def count_properties(self) -> int:
        return await self._count("properties")

    async def count_images(self) -> int:
        return await self._count("property_images")

    async def count_properties_with_images(self) -> int:
        # Orphaned image rows do not count towards coverage
        property_ids = await self._property_ids()
        return len(property_ids & await self._image_owner_ids())

    async def sample_properties(self, limit: int) -> list[Property]:
        response = await self._run(
            lambda: self.client.table("properties")
            .select("*")
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return rows_to_properties(response.data)
