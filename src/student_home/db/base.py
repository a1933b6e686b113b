"""Persistence gateway contract shared by the store backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal, TypeVar

from student_home.errors import StoreError
from student_home.logging import get_logger
from student_home.models import Property, PropertyImage

logger = get_logger(__name__)

T = TypeVar("T")

Table = Literal["properties", "property_images"]


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


def default_alt_text(index: int) -> str:
    return f"Property image {index + 1}"


@dataclass(frozen=True)
class RowError:
    """A property row that could not be written."""

    index: int
    title: str
    reason: str


@dataclass
class UpsertResult:
    """Outcome of a row-by-row property upsert.

    ``saved`` maps each successful row's position in the input batch to the
    stored Property (with its id assigned).
    """

    saved: dict[int, Property] = field(default_factory=dict)
    errors: list[RowError] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return len(self.saved)

    @property
    def failed(self) -> int:
        return len(self.errors)


@dataclass
class BatchResult:
    """Counts from a chunked write where chunks fail independently."""

    succeeded: int = 0
    failed: int = 0

    def __add__(self, other: BatchResult) -> BatchResult:
        return BatchResult(self.succeeded + other.succeeded, self.failed + other.failed)


class PropertyStore(ABC):
    """Batch CRUD over the ``properties`` and ``property_images`` tables.

    Writes are independent batch calls with no transaction spanning batches.
    A failing row or chunk is logged and counted; it never aborts the rest.
    """

    def __init__(self, *, delete_batch_size: int = 50) -> None:
        self.delete_batch_size = delete_batch_size

    @abstractmethod
    async def initialize(self) -> None:
        """Open the connection and make sure the schema exists."""

    @abstractmethod
    async def close(self) -> None: ...

    # Backend primitives. Each raises StoreError on failure.

    @abstractmethod
    async def _write_property(self, prop: Property) -> Property:
        """Insert or update one property row and return it with its id."""

    @abstractmethod
    async def _write_images(self, images: Sequence[PropertyImage]) -> int: ...

    @abstractmethod
    async def _delete_ids(self, table: Table, ids: Sequence[str]) -> int: ...

    @abstractmethod
    async def _update_image_url(self, image_id: str, image_url: str) -> None: ...

    # Queries

    @abstractmethod
    async def list_properties(self) -> list[Property]: ...

    @abstractmethod
    async def list_images(self) -> list[PropertyImage]:
        """All image rows, grouped by property and ordered by image_order."""

    @abstractmethod
    async def list_properties_missing_images(self) -> set[str]:
        """Ids of properties with zero associated image rows."""

    @abstractmethod
    async def delete_orphaned_images(self) -> int:
        """Delete image rows whose property no longer exists."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Delete every image and property row."""

    @abstractmethod
    async def count_properties(self) -> int: ...

    @abstractmethod
    async def count_images(self) -> int: ...

    @abstractmethod
    async def count_properties_with_images(self) -> int: ...

    @abstractmethod
    async def sample_properties(self, limit: int) -> list[Property]: ...

    # Batch operations

    async def upsert_properties(self, batch: Sequence[Property]) -> UpsertResult:
        """Write properties one row at a time.

        A row that violates a constraint is recorded as a RowError and the
        remaining rows are still attempted. Nothing is retried.
        """
        result = UpsertResult()
        for index, prop in enumerate(batch):
            try:
                result.saved[index] = await self._write_property(prop)
            except StoreError as e:
                logger.warning(
                    "property_row_failed",
                    index=index,
                    title=prop.title,
                    error=str(e),
                )
                result.errors.append(RowError(index=index, title=prop.title, reason=str(e)))
        logger.debug("properties_upserted", inserted=result.inserted, failed=result.failed)
        return result

    async def upsert_images(self, property_id: str, images: Sequence[PropertyImage]) -> int:
        """Insert an ordered image set for one property.

        Order is taken from the sequence: the first image is primary and
        ``image_order`` is the index. Missing alt text becomes
        "Property image N".

        Raises:
            StoreError: If the batch insert fails.
        """
        if not images:
            return 0
        rows = [
            image.model_copy(
                update={
                    "property_id": property_id,
                    "is_primary": index == 0,
                    "image_order": index,
                    "alt_text": image.alt_text or default_alt_text(index),
                }
            )
            for index, image in enumerate(images)
        ]
        count = await self._write_images(rows)
        logger.debug("property_images_saved", property_id=property_id, image_count=count)
        return count

    async def _delete_in_chunks(self, table: Table, ids: Iterable[str]) -> BatchResult:
        pending = sorted(set(ids))
        result = BatchResult()
        for chunk in chunked(pending, self.delete_batch_size):
            try:
                result.succeeded += await self._delete_ids(table, chunk)
            except StoreError as e:
                result.failed += len(chunk)
                logger.warning("delete_chunk_failed", table=table, size=len(chunk), error=str(e))
        if pending:
            logger.info(
                "rows_deleted",
                table=table,
                deleted=result.succeeded,
                failed=result.failed,
            )
        return result

    async def delete_images(self, image_ids: Iterable[str]) -> BatchResult:
        """Delete image rows in chunks of ``delete_batch_size``."""
        return await self._delete_in_chunks("property_images", image_ids)

    async def delete_properties(self, property_ids: Iterable[str]) -> BatchResult:
        """Delete property rows (and, by cascade, their images) in chunks."""
        return await self._delete_in_chunks("properties", property_ids)

    async def update_image_urls(self, updates: Mapping[str, str]) -> BatchResult:
        """Rewrite ``image_url`` in place for each image id."""
        result = BatchResult()
        for image_id, image_url in updates.items():
            try:
                await self._update_image_url(image_id, image_url)
            except StoreError as e:
                result.failed += 1
                logger.warning("image_url_update_failed", image_id=image_id, error=str(e))
            else:
                result.succeeded += 1
        return result
