"""Tests for the SQLite property store."""

from pathlib import Path
from unittest.mock import patch

import pytest

from student_home.db.sqlite_store import SQLitePropertyStore
from student_home.errors import StoreError
from student_home.models import PriceType, Property, PropertyImage, PropertyType


def _images(prefix: str, count: int) -> list[PropertyImage]:
    return [
        PropertyImage(image_url=f"https://media.rightmove.co.uk/dir/{prefix}/img_{i}.jpg")
        for i in range(count)
    ]


async def _save(store: SQLitePropertyStore, prop: Property) -> Property:
    result = await store.upsert_properties([prop])
    assert result.inserted == 1
    return result.saved[0]


class TestInitialize:
    @pytest.mark.asyncio
    async def test_creates_file_and_is_idempotent(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "store.db"
        store = SQLitePropertyStore(str(db_path))
        await store.initialize()
        await store.initialize()
        await store.close()
        assert db_path.exists()

    @pytest.mark.asyncio
    async def test_persists_across_connections(
        self, tmp_path: Path, sample_property: Property
    ) -> None:
        db_path = str(tmp_path / "store.db")
        store = SQLitePropertyStore(db_path)
        await store.initialize()
        await _save(store, sample_property)
        await store.close()

        reopened = SQLitePropertyStore(db_path)
        await reopened.initialize()
        try:
            assert await reopened.count_properties() == 1
        finally:
            await reopened.close()


class TestUpsertProperties:
    @pytest.mark.asyncio
    async def test_assigns_id_and_round_trips(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)

        assert saved.id is not None
        assert saved.created_at is not None
        assert saved.updated_at is not None

        (stored,) = await store.list_properties()
        assert stored.id == saved.id
        assert stored.title == sample_property.title
        assert stored.price == 250
        assert stored.price_type == sample_property.price_type
        assert stored.postcode == "M1 5QA"
        assert stored.features == frozenset({"Bills included", "Gym"})
        assert stored.furnished is True
        assert stored.scraped_at == sample_property.scraped_at

    @pytest.mark.asyncio
    async def test_bad_row_does_not_stop_batch(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        batch = [
            sample_property.model_copy(update={"title": f"Property {i}"}) for i in range(10)
        ]
        # Bypasses model validation so the database constraint is what rejects it
        batch[4] = Property.model_construct(**{**batch[4].model_dump(), "price": -1})

        result = await store.upsert_properties(batch)

        assert result.inserted == 9
        assert result.failed == 1
        assert result.errors[0].index == 4
        assert result.errors[0].title == "Property 4"
        assert 4 not in result.saved
        assert await store.count_properties() == 9

    @pytest.mark.asyncio
    async def test_existing_id_updates_in_place(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)

        updated = await _save(store, saved.model_copy(update={"price": 275.0}))

        assert updated.id == saved.id
        assert updated.created_at == saved.created_at
        (stored,) = await store.list_properties()
        assert stored.price == 275
        assert await store.count_properties() == 1


class TestImages:
    @pytest.mark.asyncio
    async def test_order_primary_and_alt_text(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        images = _images("123", 3)
        images[1] = images[1].model_copy(update={"alt_text": "Kitchen"})

        assert await store.upsert_images(saved.id, images) == 3

        stored = await store.list_images()
        assert [image.image_order for image in stored] == [0, 1, 2]
        assert [image.is_primary for image in stored] == [True, False, False]
        assert [image.alt_text for image in stored] == [
            "Property image 1",
            "Kitchen",
            "Property image 3",
        ]
        assert all(image.property_id == saved.id for image in stored)
        assert all(image.id is not None for image in stored)

    @pytest.mark.asyncio
    async def test_empty_image_set(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        assert await store.upsert_images(saved.id, []) == 0

    @pytest.mark.asyncio
    async def test_unknown_property_raises(self, store: SQLitePropertyStore) -> None:
        with pytest.raises(StoreError):
            await store.upsert_images("no-such-property", _images("1", 1))

    @pytest.mark.asyncio
    async def test_delete_property_cascades(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        await store.upsert_images(saved.id, _images("123", 2))

        result = await store.delete_properties([saved.id])

        assert result.succeeded == 1
        assert await store.count_images() == 0

    @pytest.mark.asyncio
    async def test_update_image_urls(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        await store.upsert_images(saved.id, _images("123", 1))
        (image,) = await store.list_images()
        assert image.id is not None
        new_url = "https://images.rightmove.co.uk/dir/123/img_0.jpg"

        result = await store.update_image_urls({image.id: new_url, "missing": new_url})

        assert (result.succeeded, result.failed) == (1, 1)
        (updated,) = await store.list_images()
        assert updated.image_url == new_url


class TestChunkedDeletes:
    @pytest.mark.asyncio
    async def test_deletes_in_chunks(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        await store.upsert_images(saved.id, _images("123", 5))
        ids = [image.id for image in await store.list_images() if image.id is not None]
        store.delete_batch_size = 2

        with patch.object(store, "_delete_ids", wraps=store._delete_ids) as spy:
            result = await store.delete_images([*ids, ids[0]])

        assert spy.call_count == 3
        assert result.succeeded == 5
        assert result.failed == 0
        assert await store.count_images() == 0

    @pytest.mark.asyncio
    async def test_failed_chunk_is_counted_and_skipped(self, store: SQLitePropertyStore) -> None:
        store.delete_batch_size = 2
        ids = [f"img-{i}" for i in range(5)]

        with patch.object(store, "_delete_ids", side_effect=[2, StoreError("locked"), 1]):
            result = await store.delete_images(ids)

        assert result.succeeded == 3
        assert result.failed == 2

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, store: SQLitePropertyStore) -> None:
        result = await store.delete_properties([])
        assert (result.succeeded, result.failed) == (0, 0)


class TestQueries:
    @pytest.mark.asyncio
    async def test_missing_images_and_counts(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        with_images = await _save(store, sample_property)
        without = await _save(store, sample_property.model_copy(update={"title": "Bare flat"}))
        assert with_images.id is not None
        await store.upsert_images(with_images.id, _images("123", 2))

        assert await store.list_properties_missing_images() == {without.id}
        assert await store.count_properties() == 2
        assert await store.count_images() == 2
        assert await store.count_properties_with_images() == 1

    @pytest.mark.asyncio
    async def test_delete_orphaned_images(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        await store.upsert_images(saved.id, _images("123", 1))

        conn = await store._get_connection()
        await conn.execute("PRAGMA foreign_keys=OFF")
        await store.upsert_images("deleted-property", _images("999", 2))
        await conn.execute("PRAGMA foreign_keys=ON")

        assert await store.count_properties_with_images() == 1
        assert await store.delete_orphaned_images() == 2
        assert await store.count_images() == 1

    @pytest.mark.asyncio
    async def test_reads_survive_out_of_range_rows(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        legacy = await _save(store, sample_property)
        await _save(store, sample_property.model_copy(update={"title": "Valid flat"}))
        conn = await store._get_connection()
        await conn.execute("PRAGMA ignore_check_constraints=ON")
        await conn.execute(
            "UPDATE properties SET property_type = 'apartment', bedrooms = 0, "
            "price_type = 'pcm', price = -1 WHERE id = ?",
            (legacy.id,),
        )
        await conn.execute("PRAGMA ignore_check_constraints=OFF")

        props = {prop.id: prop for prop in await store.list_properties()}

        assert len(props) == 2
        coerced = props[legacy.id]
        assert coerced.property_type == PropertyType.FLAT
        assert coerced.price_type == PriceType.MONTHLY
        assert (coerced.bedrooms, coerced.price) == (1, 0)
        assert len(await store.sample_properties(5)) == 2

    @pytest.mark.asyncio
    async def test_sample_properties(
        self, store: SQLitePropertyStore, sample_property: Property
    ) -> None:
        for i in range(4):
            await _save(store, sample_property.model_copy(update={"title": f"Flat {i}"}))

        sample = await store.sample_properties(2)

        assert len(sample) == 2

    @pytest.mark.asyncio
    async def test_clear_all(self, store: SQLitePropertyStore, sample_property: Property) -> None:
        saved = await _save(store, sample_property)
        assert saved.id is not None
        await store.upsert_images(saved.id, _images("123", 2))

        await store.clear_all()

        assert await store.count_properties() == 0
        assert await store.count_images() == 0
