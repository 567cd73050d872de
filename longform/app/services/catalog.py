import logging
from typing import Any, Awaitable, Callable

from longform.app import config
from longform.app.services.aggregator import MostPopularQuery, QueryShape, RelatedQuery, SearchQuery, aggregate
from longform.app.services.categories import CategoryResolver
from longform.app.services.curated import CuratedCatalogBuilder
from longform.app.services.global_feed import GlobalAggregator
from longform.app.services.metrics import MetricsState
from longform.app.services.normalizer import hydrate_channel_avatars, hydrate_videos
from longform.app.services.schemas import CuratedPage, NormalizedVideo, Region, VideoPage
from longform.app.services.store import KeyValueStore, MemoryStore
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import YouTubeClient

log = logging.getLogger("longform.catalog")

MISSING = "__missing__"


def _part(value: Any) -> str:
    return "" if value is None else str(value)


def page_key(prefix: str, *parts: Any) -> str:
    return prefix + ":" + ":".join(_part(part) for part in parts)


def default_threshold(min_duration_seconds: int | None) -> int:
    if min_duration_seconds is None:
        return config.SHORTS_THRESHOLD_SECONDS + 1
    return min_duration_seconds


def decode_offset(page_token: str | None) -> int:
    if not page_token:
        return 0
    try:
        return max(0, int(page_token))
    except ValueError:
        return 0


class CatalogService:
    """Operations the request handlers call. Every result goes through the value cache."""

    def __init__(
        self,
        client: YouTubeClient,
        cache: ValueCache,
        categories: CategoryResolver | None = None,
        curated: CuratedCatalogBuilder | None = None,
        global_feed: GlobalAggregator | None = None,
        ttl_seconds: int | None = None,
        max_page_fetches: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.categories = categories or CategoryResolver(client, cache)
        self.curated = curated or CuratedCatalogBuilder(client, cache)
        self.global_feed = global_feed or GlobalAggregator(client, cache, self.categories)
        self.ttl_seconds = ttl_seconds or config.CACHE_TTL_SECONDS
        self.max_page_fetches = max_page_fetches or config.MAX_PAGE_FETCHES

    @property
    def metrics(self) -> MetricsState:
        return self.cache.metrics

    async def _cached_page(self, key: str, load: Callable[[], Awaitable[VideoPage]]) -> VideoPage:
        async def loader() -> dict[str, Any]:
            page = await load()
            return page.model_dump(by_alias=True)

        payload = await self.cache.get_or_load(key, loader, self.ttl_seconds)
        return VideoPage.model_validate(payload)

    def _aggregate(self, shape: QueryShape, target: int, threshold: int, page_token: str | None):
        return lambda: aggregate(
            self.client,
            self.cache,
            shape,
            target=target,
            threshold_seconds=threshold,
            start_cursor=page_token,
            max_page_fetches=self.max_page_fetches,
        )

    async def get_video(self, video_id: str) -> NormalizedVideo | None:
        async def loader() -> Any:
            videos = await hydrate_videos(self.client, [video_id])
            if not videos:
                return MISSING
            videos = await hydrate_channel_avatars(self.client, self.cache, videos)
            return videos[0].model_dump(by_alias=True)

        payload = await self.cache.get_or_load(f"video:{video_id}", loader, self.ttl_seconds)
        if payload == MISSING:
            return None
        return NormalizedVideo.model_validate(payload)

    async def search(
        self,
        query: str,
        page_token: str | None = None,
        region_code: str | None = None,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
    ) -> VideoPage:
        target = target_size or config.DEFAULT_PAGE_SIZE
        threshold = default_threshold(min_duration_seconds)
        key = page_key("search", query, page_token, region_code, target, threshold)
        shape = SearchQuery(query=query, region_code=region_code)
        return await self._cached_page(key, self._aggregate(shape, target, threshold, page_token))

    def most_popular_key(
        self,
        region: str,
        page_token: str | None,
        target: int,
        threshold: int,
        category_id: str | None,
    ) -> str:
        return page_key("popular", region.upper(), category_id or "all", threshold, target, page_token or "root")

    async def most_popular(
        self,
        region: str,
        page_token: str | None = None,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
        category_id: str | None = None,
    ) -> VideoPage:
        target = target_size or config.DEFAULT_PAGE_SIZE
        threshold = default_threshold(min_duration_seconds)
        key = self.most_popular_key(region, page_token, target, threshold, category_id)
        shape = MostPopularQuery(region_code=region.upper(), category_id=category_id)
        return await self._cached_page(key, self._aggregate(shape, target, threshold, page_token))

    async def peek_most_popular(
        self,
        region: str,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
        category_id: str | None = None,
    ) -> VideoPage | None:
        target = target_size or config.DEFAULT_PAGE_SIZE
        threshold = default_threshold(min_duration_seconds)
        payload = await self.cache.peek(self.most_popular_key(region, None, target, threshold, category_id))
        if payload is None:
            return None
        return VideoPage.model_validate(payload)

    async def global_most_popular(
        self,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
        category_title: str | None = None,
        category_id: str | None = None,
    ) -> VideoPage:
        target = target_size or config.DEFAULT_PAGE_SIZE
        threshold = default_threshold(min_duration_seconds)
        key = page_key("popular-global", category_id or "", (category_title or "").lower(), threshold, target)
        return await self._cached_page(
            key,
            lambda: self.global_feed.aggregate_global(
                target,
                threshold,
                category_title=category_title,
                category_id=category_id,
            ),
        )

    async def related(
        self,
        video_id: str,
        page_token: str | None = None,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
    ) -> VideoPage:
        target = target_size or config.DEFAULT_PAGE_SIZE
        threshold = default_threshold(min_duration_seconds)
        key = page_key("related", video_id, page_token, target, threshold)
        shape = RelatedQuery(video_id=video_id)
        return await self._cached_page(key, self._aggregate(shape, target, threshold, page_token))

    async def curated_catalog_page(
        self,
        page_token: str | None = None,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
        catalog: list[NormalizedVideo] | None = None,
    ) -> CuratedPage:
        target = target_size or config.DEFAULT_PAGE_SIZE
        threshold = default_threshold(min_duration_seconds)
        if catalog is None:
            catalog = await self.curated.get_catalog()
        eligible = [video for video in catalog if video.duration_sec >= threshold]
        offset = decode_offset(page_token)
        items = eligible[offset:offset + target]
        end = offset + len(items)
        return CuratedPage(
            items=items,
            next_page_token=str(end) if end < len(eligible) else None,
            total_available=len(eligible),
        )

    async def peek_curated_catalog_page(
        self,
        target_size: int | None = None,
        min_duration_seconds: int | None = None,
    ) -> CuratedPage | None:
        catalog = await self.curated.peek_catalog()
        if catalog is None:
            return None
        return await self.curated_catalog_page(
            target_size=target_size, min_duration_seconds=min_duration_seconds, catalog=catalog
        )

    async def resolve_category_id(self, region: str, title: str) -> str | None:
        return await self.categories.resolve(region, title)

    async def regions(self) -> list[Region]:
        async def loader() -> list[dict[str, Any]]:
            regions = await self.client.list_regions()
            return [
                Region(code=region.snippet.gl, name=region.snippet.name).model_dump(by_alias=True)
                for region in regions
            ]

        payload = await self.cache.get_or_load("regions", loader, config.REGIONS_CACHE_TTL_SECONDS)
        return [Region.model_validate(item) for item in payload]


def build_catalog_service(
    store: KeyValueStore | None = None,
    metrics: MetricsState | None = None,
    session=None,
    api_key: str | None = None,
) -> CatalogService:
    metrics = metrics or MetricsState()
    store = store or MemoryStore()
    client = YouTubeClient(store, metrics, api_key=api_key, session=session)
    return CatalogService(client, ValueCache(store, metrics))
