import asyncio

import pytest

from longform.app.services.categories import NO_CATEGORY, CategoryResolver, category_key, slugify
from longform.app.services.errors import UpstreamError
from longform.tests.fakes import error_response


def category(cid, title, assignable=True):
    return {"id": cid, "snippet": {"title": title, "assignable": assignable}}


def test_slug_and_key():
    assert slugify("  Film & Animation ") == "film-animation"
    assert category_key("us", "Education") == "category:US:education"


def test_resolves_case_insensitively(client, cache, youtube):
    youtube.categories["US"] = [category("10", "Music"), category("27", "Education")]
    resolver = CategoryResolver(client, cache)

    assert asyncio.run(resolver.resolve("us", "education")) == "27"


def test_slug_and_display_title_share_one_entry(client, cache, youtube, session):
    youtube.categories["US"] = [category("1", "Film & Animation")]
    resolver = CategoryResolver(client, cache)

    async def both():
        return await resolver.resolve("US", "film-animation"), await resolver.resolve("US", "Film & Animation")

    assert asyncio.run(both()) == ("1", "1")
    assert session.count("videoCategories") == 1


def test_unassignable_category_is_ignored(client, cache, youtube):
    youtube.categories["US"] = [category("18", "Short Movies", assignable=False)]
    resolver = CategoryResolver(client, cache)

    assert asyncio.run(resolver.resolve("US", "Short Movies")) is None


def test_miss_is_cached_without_more_calls(client, cache, youtube, session, store):
    youtube.categories["JP"] = [category("10", "Music")]
    resolver = CategoryResolver(client, cache, ttl_seconds=1000, miss_ttl_seconds=50)

    async def scenario():
        first = await resolver.resolve("JP", "Education")
        calls_after_first = session.count()
        second = await resolver.resolve("JP", "Education")
        return first, second, calls_after_first

    first, second, calls_after_first = asyncio.run(scenario())

    assert first is None and second is None
    assert session.count() == calls_after_first == 1
    assert asyncio.run(store.get(category_key("JP", "Education"))) == NO_CATEGORY
    assert 0 < store.ttl(category_key("JP", "Education")) <= 50


def test_hit_uses_long_ttl(client, cache, youtube, store):
    youtube.categories["US"] = [category("27", "Education")]
    resolver = CategoryResolver(client, cache, ttl_seconds=1000, miss_ttl_seconds=50)

    asyncio.run(resolver.resolve("US", "Education"))

    assert store.ttl(category_key("US", "Education")) > 50


def test_lookup_failure_propagates_and_is_not_cached(client, cache, youtube, store):
    youtube.fail("videoCategories", "US", error_response(400, "invalidRegionCode"))
    resolver = CategoryResolver(client, cache)

    with pytest.raises(UpstreamError):
        asyncio.run(resolver.resolve("US", "Education"))
    assert asyncio.run(store.get(category_key("US", "Education"))) is None
