"""Tests for the tag registry."""

import pytest
from sqlalchemy import func, select

from practice_journal.core.exceptions import InvalidInputError, TagNotFoundError
from practice_journal.tags.models import EntityTag, Tag, TaggableEntity
from practice_journal.tags.service import TagService, normalize_tag_name

from tests.conftest import OTHER_OWNER, OWNER


async def _tag_count(db) -> int:
    return (await db.execute(select(func.count(Tag.id)))).scalar_one()


def test_normalize_tag_name():
    assert normalize_tag_name("  Jazz ") == "jazz"
    assert normalize_tag_name(None) == ""


@pytest.mark.asyncio
async def test_find_or_create_tag_deduplicates_normalized_names(db):
    service = TagService(db)

    first = await service.find_or_create_tag(OWNER, "Jazz")
    second = await service.find_or_create_tag(OWNER, "  jazz ")
    third = await service.find_or_create_tag(OWNER, "JAZZ")

    assert first.name == "jazz"
    assert first.id == second.id == third.id
    assert await _tag_count(db) == 1


@pytest.mark.asyncio
async def test_same_name_for_different_owners(db):
    service = TagService(db)

    mine = await service.find_or_create_tag(OWNER, "Jazz")
    theirs = await service.find_or_create_tag(OTHER_OWNER, "jazz")

    assert mine.id != theirs.id
    assert await _tag_count(db) == 2


@pytest.mark.asyncio
async def test_find_or_create_tag_recovers_from_lost_race(db, monkeypatch):
    """A concurrent caller inserts the tag between our lookup and our insert."""
    service = TagService(db)
    existing = await service.find_or_create_tag(OWNER, "jazz")

    original_get_by_name = service.repository.get_by_name
    calls = []

    async def stale_then_fresh(user_id, name):
        calls.append(name)
        if len(calls) == 1:
            return None
        return await original_get_by_name(user_id, name)

    monkeypatch.setattr(service.repository, "get_by_name", stale_then_fresh)

    tag = await service.find_or_create_tag(OWNER, " Jazz")

    assert tag.id == existing.id
    assert len(calls) == 2
    assert await _tag_count(db) == 1
    # The session is still usable after the absorbed conflict
    assert (await service.find_or_create_tag(OWNER, "blues")).name == "blues"


@pytest.mark.asyncio
async def test_find_or_create_tag_rejects_blank_name(db):
    with pytest.raises(InvalidInputError):
        await TagService(db).find_or_create_tag(OWNER, "   ")


@pytest.mark.asyncio
async def test_find_or_create_tag_without_user(db):
    assert await TagService(db).find_or_create_tag(None, "jazz") is None
    assert await _tag_count(db) == 0


@pytest.mark.asyncio
async def test_link_tag_is_idempotent(db, make_content):
    service = TagService(db)
    content = await make_content()
    tag = await service.find_or_create_tag(OWNER, "jazz")

    assert await service.link_tag(TaggableEntity.CONTENT, content.id, tag.id) is True
    assert await service.link_tag(TaggableEntity.CONTENT, content.id, tag.id) is False

    links = (await db.execute(select(func.count()).select_from(EntityTag))).scalar_one()
    assert links == 1


@pytest.mark.asyncio
async def test_unlink_missing_link_is_not_an_error(db, make_content):
    service = TagService(db)
    content = await make_content()
    tag = await service.find_or_create_tag(OWNER, "jazz")

    assert await service.unlink_tag("content", content.id, tag.id) is False


@pytest.mark.asyncio
async def test_sync_tags_converges(db, make_content):
    service = TagService(db)
    content = await make_content()

    first = await service.sync_tags(OWNER, TaggableEntity.CONTENT, content.id, ["a", "b"])
    second = await service.sync_tags(OWNER, TaggableEntity.CONTENT, content.id, ["b", "a"])

    assert len(first.linked) == 2
    assert not second.changed
    assert second.linked == [] and second.unlinked == []
    assert await service.get_entity_tag_names(TaggableEntity.CONTENT, content.id) == ["a", "b"]


@pytest.mark.asyncio
async def test_sync_tags_replaces_set(db, make_content):
    service = TagService(db)
    content = await make_content()
    await service.sync_tags(OWNER, TaggableEntity.CONTENT, content.id, ["a", "b"])

    result = await service.sync_tags(OWNER, "content", content.id, ["B", "c", " ", "c"])

    assert len(result.linked) == 1
    assert len(result.unlinked) == 1
    assert await service.get_entity_tag_names("content", content.id) == ["b", "c"]


@pytest.mark.asyncio
async def test_repertoire_and_content_tags_are_separate(db, make_content, make_repertoire):
    service = TagService(db)
    content = await make_content()
    item = await make_repertoire()

    await service.sync_tags(OWNER, TaggableEntity.CONTENT, content.id, ["jazz"])
    await service.sync_tags(OWNER, TaggableEntity.REPERTOIRE, item.id, ["jazz", "romantic"])

    assert await service.get_entity_tag_names(TaggableEntity.CONTENT, content.id) == ["jazz"]
    assert await service.get_entity_tag_names(TaggableEntity.REPERTOIRE, item.id) == ["jazz", "romantic"]
    assert await _tag_count(db) == 2


@pytest.mark.asyncio
async def test_list_and_search_tags(db):
    service = TagService(db)
    for name in ["Swing", "bebop", "blues", "ballad"]:
        await service.find_or_create_tag(OWNER, name)
    await service.find_or_create_tag(OTHER_OWNER, "bluegrass")

    assert [t.name for t in await service.list_tags(OWNER)] == ["ballad", "bebop", "blues", "swing"]
    assert [t.name for t in await service.search_tags(OWNER, "B")] == ["ballad", "bebop", "blues"]
    assert [t.name for t in await service.search_tags(OWNER, "blu")] == ["blues"]
    assert await service.search_tags(OWNER, "  ") == []


@pytest.mark.asyncio
async def test_get_tag_checks_owner(db):
    service = TagService(db)
    tag = await service.find_or_create_tag(OTHER_OWNER, "jazz")

    with pytest.raises(PermissionError):
        await service.get_tag(OWNER, tag.id)
    with pytest.raises(TagNotFoundError):
        await service.get_tag(OWNER, "missing")
