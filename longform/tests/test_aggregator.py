import asyncio

from longform.app.services.aggregator import (
    MostPopularQuery,
    RelatedQuery,
    SearchQuery,
    aggregate,
    decode_cursor,
    encode_cursor,
)
from longform.app.services.duration import format_duration
from longform.tests.fakes import make_channel, make_video


def seed_search(youtube, pages):
    """pages: list of [(id, seconds), ...]; chained with tokens p1, p2, ..."""
    token = None
    for index, page in enumerate(pages):
        next_token = f"p{index + 1}" if index + 1 < len(pages) else None
        youtube.search_pages[token] = ([vid for vid, _ in page], next_token)
        youtube.add_videos(*(make_video(vid, duration=format_duration(sec)) for vid, sec in page))
        token = next_token


def test_collects_across_pages_until_exhausted(client, cache, youtube):
    seed_search(youtube, [[("v45", 45), ("v70", 70)], [("v61", 61), ("v500", 500)]])

    page = asyncio.run(aggregate(client, cache, SearchQuery("lofi"), target=3, threshold_seconds=61))

    assert [v.id for v in page.items] == ["v70", "v61", "v500"]
    assert page.next_page_token is None


def test_three_page_upstream_resumes_inside_second_page(client, cache, youtube, session):
    seed_search(
        youtube,
        [[("v45", 45), ("v70", 70)], [("v61", 61), ("v500", 500)], [("v30", 30), ("v90", 90)]],
    )

    async def scenario():
        first = await aggregate(client, cache, SearchQuery("lofi"), target=2, threshold_seconds=61)
        second = await aggregate(
            client, cache, SearchQuery("lofi"), target=2, threshold_seconds=61, start_cursor=first.next_page_token
        )
        return first, second

    first, second = asyncio.run(scenario())

    assert [v.id for v in first.items] == ["v70", "v61"]
    assert first.next_page_token == encode_cursor("p1", 1)
    assert [v.id for v in second.items] == ["v500", "v90"]
    assert second.next_page_token is None
    assert [call["params"].get("pageToken") for call in session.calls if call["endpoint"] == "search"] == [
        None, "p1", "p1", "p2",
    ]


def test_three_page_upstream_filled_at_page_end_returns_next_token(client, cache, youtube):
    seed_search(youtube, [[("v45", 45), ("v70", 70)], [("v61", 61)], [("v90", 90)]])

    page = asyncio.run(aggregate(client, cache, SearchQuery("lofi"), target=2, threshold_seconds=61))

    assert [v.id for v in page.items] == ["v70", "v61"]
    assert page.next_page_token == "p2"


def test_overshoot_on_last_page_keeps_a_cursor(client, cache, youtube):
    seed_search(youtube, [[(f"v{i}", 300) for i in range(5)]])

    async def walk():
        pages = []
        cursor = None
        while True:
            page = await aggregate(
                client, cache, SearchQuery("q"), target=2, threshold_seconds=61, start_cursor=cursor
            )
            pages.append(page)
            cursor = page.next_page_token
            if cursor is None:
                return pages

    pages = asyncio.run(walk())

    assert [[v.id for v in page.items] for page in pages] == [["v0", "v1"], ["v2", "v3"], ["v4"]]
    assert [page.next_page_token for page in pages] == [encode_cursor(None, 2), encode_cursor(None, 4), None]


def test_cursor_round_trip():
    assert encode_cursor("CAUQAA", 0) == "CAUQAA"
    assert decode_cursor(encode_cursor("CAUQAA", 3)) == ("CAUQAA", 3)
    assert decode_cursor(encode_cursor(None, 2)) == (None, 2)
    assert decode_cursor("CAUQAA") == ("CAUQAA", 0)
    assert decode_cursor(None) == (None, 0)


def test_short_boundary_uses_threshold(client, cache, youtube):
    seed_search(youtube, [[("v60", 60), ("v61", 61), ("v62", 62)]])

    page = asyncio.run(aggregate(client, cache, SearchQuery("q"), target=10, threshold_seconds=61))

    assert [v.id for v in page.items] == ["v61", "v62"]


def test_stops_when_target_met_and_returns_cursor(client, cache, youtube, session):
    seed_search(
        youtube,
        [[("a", 100), ("b", 100)], [("c", 100), ("d", 100)], [("e", 100)]],
    )

    page = asyncio.run(aggregate(client, cache, SearchQuery("q"), target=2, threshold_seconds=61))

    assert [v.id for v in page.items] == ["a", "b"]
    assert page.next_page_token == "p1"
    assert session.count("search") == 1


def test_resumes_from_cursor(client, cache, youtube):
    seed_search(youtube, [[("a", 100)], [("b", 100)], [("c", 100)]])

    page = asyncio.run(
        aggregate(client, cache, SearchQuery("q"), target=5, threshold_seconds=61, start_cursor="p1")
    )

    assert [v.id for v in page.items] == ["b", "c"]
    assert page.next_page_token is None


def test_page_fetches_are_bounded(client, cache, youtube, session):
    seed_search(youtube, [[(f"s{i}", 30)] for i in range(10)])

    page = asyncio.run(
        aggregate(client, cache, SearchQuery("q"), target=5, threshold_seconds=61, max_page_fetches=3)
    )

    assert page.items == []
    assert page.next_page_token == "p3"
    assert session.count("search") == 3


def test_duplicates_across_pages_are_dropped(client, cache, youtube):
    seed_search(youtube, [[("a", 100), ("b", 100)], [("b", 100), ("c", 100)]])

    page = asyncio.run(aggregate(client, cache, SearchQuery("q"), target=5, threshold_seconds=61))

    assert [v.id for v in page.items] == ["a", "b", "c"]


def test_most_popular_uses_chart_records(client, cache, youtube, session):
    youtube.add_videos(make_video("x", duration="PT10M"), make_video("y", duration="PT30S"))
    youtube.chart_pages[("US", None, None)] = (["x", "y"], None)

    page = asyncio.run(aggregate(client, cache, MostPopularQuery("US"), target=5, threshold_seconds=61))

    assert [v.id for v in page.items] == ["x"]
    assert session.count("videos") == 1
    assert session.calls[0]["params"]["chart"] == "mostPopular"


def test_related_hydrates_avatars(client, cache, youtube):
    youtube.related_pages[None] = (["r1"], None)
    youtube.add_videos(make_video("r1", channel_id="UC_R"))
    youtube.channels["UC_R"] = make_channel("UC_R", avatar="https://img/r.png")

    page = asyncio.run(aggregate(client, cache, RelatedQuery("seed"), target=3, threshold_seconds=61))

    assert page.items[0].channel_avatar_url == "https://img/r.png"


def test_hydrate_avatars_can_be_skipped(client, cache, youtube, session):
    seed_search(youtube, [[("a", 100)]])

    asyncio.run(
        aggregate(client, cache, SearchQuery("q"), target=1, threshold_seconds=61, hydrate_avatars=False)
    )

    assert session.count("channels") == 0
