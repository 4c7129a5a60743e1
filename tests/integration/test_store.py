"""Tests for the filesystem series store."""

import gc

import pytest

from py_series.internal import HTTPError
from py_series.models import CreateInstanceCommand, SeriesTemplate
from py_series.rule import RecurrenceRule
from py_series.store import LocalSeriesStore

pytestmark = pytest.mark.integration


def make_template(series_id="s1", name="Open Climb"):
    return SeriesTemplate(id=series_id, name=name, rule=RecurrenceRule.weekly(2), start_date="2026-01-06")


@pytest.mark.asyncio
async def test_create_and_get_series(store):
    """Test that a stored template reads back unchanged."""
    template = await store.create_series(make_template())

    loaded = await store.get_series("s1")
    assert loaded.to_dict() == template.to_dict()
    assert loaded.created_at and loaded.updated_at
    assert (store.series_dir / "s1.json").exists()
    assert not list(store.series_dir.glob("*.tmp"))


@pytest.mark.asyncio
async def test_create_series_twice_conflicts(store):
    await store.create_series(make_template())
    with pytest.raises(HTTPError) as excinfo:
        await store.create_series(make_template())
    assert excinfo.value.code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize("series_id", ["missing", "../escape", ".hidden", ""])
async def test_get_unknown_or_invalid_series(store, series_id):
    with pytest.raises(HTTPError) as excinfo:
        await store.get_series(series_id)
    assert excinfo.value.code == 404


@pytest.mark.asyncio
async def test_list_series_ordered_by_start(store):
    later = SeriesTemplate(id="b", name="B", rule=RecurrenceRule.weekly(1), start_date="2026-03-02")
    await store.create_series(later)
    await store.create_series(make_template("a", "A"))

    assert [t.id for t in await store.list_series()] == ["a", "b"]


@pytest.mark.asyncio
async def test_create_instance_copies_template_content(store):
    template = make_template()
    template.location = "Hall A"
    template.time_start = "18:00"
    await store.create_series(template)

    instance, created = await store.create_instance(
        template, CreateInstanceCommand("s1", "2026-01-06", "open-climb-2026-01-06")
    )

    assert created
    assert instance.series_id == "s1"
    assert instance.date == "2026-01-06"
    assert instance.location == "Hall A"
    assert instance.time_start == "18:00"
    assert (await store.get_instance(instance.id)).to_dict() == instance.to_dict()


@pytest.mark.asyncio
async def test_create_instance_is_idempotent_per_date(store):
    """Test that creating an existing date returns the stored instance."""
    template = await store.create_series(make_template())
    command = CreateInstanceCommand("s1", "2026-01-06", "open-climb-2026-01-06")

    first, created_first = await store.create_instance(template, command)
    second, created_second = await store.create_instance(template, command)

    assert created_first and not created_second
    assert second.id == first.id
    assert len(await store.list_instances("s1")) == 1


@pytest.mark.asyncio
async def test_create_instance_disambiguates_slug(store):
    """Test that a slug used by another series gets a suffix."""
    first = await store.create_series(make_template("s1"))
    second = await store.create_series(make_template("s2"))
    slug = "open-climb-2026-01-06"

    await store.create_instance(first, CreateInstanceCommand("s1", "2026-01-06", slug))
    instance, created = await store.create_instance(second, CreateInstanceCommand("s2", "2026-01-06", slug))

    assert created
    assert instance.slug == "open-climb-2026-01-06-2"
    assert await store.slugs() == {slug, "open-climb-2026-01-06-2"}


@pytest.mark.asyncio
async def test_delete_series_detaches_instances(store):
    template = await store.create_series(make_template())
    instance, _ = await store.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "x"))

    await store.delete_series("s1")

    assert (await store.get_instance(instance.id)).series_id == ""
    assert await store.list_instances("s1") == []
    with pytest.raises(HTTPError):
        await store.get_series("s1")


@pytest.mark.asyncio
async def test_delete_instance(store):
    template = await store.create_series(make_template())
    instance, _ = await store.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "x"))

    await store.delete_instance(instance.id)

    with pytest.raises(HTTPError) as excinfo:
        await store.get_instance(instance.id)
    assert excinfo.value.code == 404
    with pytest.raises(HTTPError):
        await store.delete_instance(instance.id)


@pytest.mark.asyncio
async def test_create_instance_batch_reads_directory_once(store, monkeypatch):
    """Test that creates after the first use the in-memory index."""
    template = await store.create_series(make_template())
    await store.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "open-climb-2026-01-06"))
    monkeypatch.setattr(store, "_all_instances", lambda: pytest.fail("instance directory rescanned"))

    for day in ("2026-01-13", "2026-01-20", "2026-01-13"):
        await store.create_instance(template, CreateInstanceCommand("s1", day, f"open-climb-{day}"))

    assert await store.slugs() == {"open-climb-2026-01-06", "open-climb-2026-01-13", "open-climb-2026-01-20"}


@pytest.mark.asyncio
async def test_reopened_store_indexes_existing_instances(store):
    template = await store.create_series(make_template())
    first, _ = await store.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "x"))

    reopened = LocalSeriesStore(store.root_dir)
    again, created = await reopened.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "x"))
    other, _ = await reopened.create_instance(template, CreateInstanceCommand("s1", "2026-01-13", "x"))

    assert not created
    assert again.id == first.id
    assert other.slug == "x-2"


@pytest.mark.asyncio
async def test_deleted_instance_frees_date_and_slug(store):
    template = await store.create_series(make_template())
    instance, _ = await store.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "x"))

    await store.delete_instance(instance.id)
    replacement, created = await store.create_instance(template, CreateInstanceCommand("s1", "2026-01-06", "x"))

    assert created
    assert replacement.id != instance.id
    assert replacement.slug == "x"


@pytest.mark.asyncio
async def test_series_locks_are_released(store):
    """Test that the lock table does not keep locks nobody uses."""
    async with store.series_lock("s1"):
        assert "s1" in store._locks
    gc.collect()
    assert "s1" not in store._locks
