import logging
from dataclasses import dataclass

from longform.app import config
from longform.app.services.normalizer import hydrate_channel_avatars, hydrate_videos, normalize_videos
from longform.app.services.schemas import NormalizedVideo, VideoPage
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import YouTubeClient

log = logging.getLogger("longform.aggregator")


@dataclass(frozen=True)
class SearchQuery:
    query: str
    region_code: str | None = None

    def describe(self) -> str:
        return f"search q={self.query!r} region={self.region_code}"


@dataclass(frozen=True)
class MostPopularQuery:
    region_code: str
    category_id: str | None = None

    def describe(self) -> str:
        return f"mostPopular region={self.region_code} category={self.category_id}"


@dataclass(frozen=True)
class RelatedQuery:
    video_id: str

    def describe(self) -> str:
        return f"related video={self.video_id}"


QueryShape = SearchQuery | MostPopularQuery | RelatedQuery

CURSOR_SEP = "~"


def encode_cursor(page_token: str | None, offset: int) -> str | None:
    """Continuation that re-reads `page_token` and skips its first `offset` videos."""
    if not offset:
        return page_token
    return f"{page_token or ''}{CURSOR_SEP}{offset}"


def decode_cursor(cursor: str | None) -> tuple[str | None, int]:
    if not cursor or CURSOR_SEP not in cursor:
        return cursor or None, 0
    page_token, _, offset = cursor.rpartition(CURSOR_SEP)
    try:
        return page_token or None, max(0, int(offset))
    except ValueError:
        return cursor, 0


async def fetch_page(
    client: YouTubeClient,
    shape: QueryShape,
    cursor: str | None,
    page_size: int,
) -> tuple[list[NormalizedVideo], str | None]:
    """One upstream page as normalized videos in upstream order, plus its continuation token."""
    if isinstance(shape, MostPopularQuery):
        records, next_token = await client.list_most_popular(
            shape.region_code, page_token=cursor, category_id=shape.category_id, max_results=page_size
        )
        return normalize_videos(records), next_token

    if isinstance(shape, SearchQuery):
        ids, next_token = await client.search_videos(
            shape.query, page_token=cursor, region_code=shape.region_code, max_results=page_size
        )
    elif isinstance(shape, RelatedQuery):
        ids, next_token = await client.search_related(shape.video_id, page_token=cursor, max_results=page_size)
    else:
        raise TypeError(f"unsupported query shape: {shape!r}")
    return await hydrate_videos(client, list(dict.fromkeys(ids))), next_token


async def aggregate(
    client: YouTubeClient,
    cache: ValueCache,
    shape: QueryShape,
    target: int,
    threshold_seconds: int,
    start_cursor: str | None = None,
    max_page_fetches: int | None = None,
    page_size: int | None = None,
    hydrate_avatars: bool = True,
) -> VideoPage:
    """
    Walk upstream pages until `target` qualifying videos are collected.

    A video qualifies when its duration is at least `threshold_seconds` and its
    id has not been collected yet; upstream order is kept. The walk stops when
    the target is met, the upstream has no continuation token, or
    `max_page_fetches` pages were read. When the target fills up partway
    through a page that still holds qualifying videos, the returned token
    points back into that page (see `encode_cursor`), so nothing is skipped.
    Otherwise it is the last continuation seen, or None once the upstream is
    exhausted.
    """
    max_pages = max_page_fetches or config.MAX_PAGE_FETCHES
    size = page_size or config.UPSTREAM_PAGE_SIZE
    target = max(1, target)

    collected: list[NormalizedVideo] = []
    seen: set[str] = set()
    cursor, skip = decode_cursor(start_cursor)
    resume: str | None = None
    pages_loaded = 0

    while pages_loaded < max_pages and len(collected) < target:
        page_token = cursor
        videos, next_token = await fetch_page(client, shape, page_token, size)
        pages_loaded += 1
        for index, video in enumerate(videos):
            if index < skip or video.duration_sec < threshold_seconds or video.id in seen:
                continue
            if len(collected) >= target:
                resume = encode_cursor(page_token, index)
                break
            seen.add(video.id)
            collected.append(video)
        skip = 0
        cursor = next_token
        if resume or not cursor:
            break

    log.debug(
        "%s pages=%d collected=%d target=%d exhausted=%s",
        shape.describe(), pages_loaded, len(collected), target, not (resume or cursor),
    )
    items = collected
    if hydrate_avatars:
        items = await hydrate_channel_avatars(client, cache, items)
    return VideoPage(items=items, next_page_token=resume or cursor or None)
