import logging

from longform.app import config
from longform.app.services.aggregator import MostPopularQuery, aggregate
from longform.app.services.categories import CategoryResolver
from longform.app.services.errors import QuotaExceededError, UpstreamError, YouTubeError
from longform.app.services.normalizer import hydrate_channel_avatars
from longform.app.services.schemas import NormalizedVideo, VideoPage
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import YouTubeClient

log = logging.getLogger("longform.global_feed")


def _merge(into: list[NormalizedVideo], seen: set[str], videos: list[NormalizedVideo], target: int) -> None:
    for video in videos:
        if len(into) >= target:
            return
        if video.id in seen:
            continue
        seen.add(video.id)
        into.append(video)


class GlobalAggregator:
    """
    Approximates a worldwide "most popular" chart, which the API does not
    offer, by merging regional charts of a fixed region list. The result is a
    one-off snapshot; it has no continuation token.
    """

    def __init__(
        self,
        client: YouTubeClient,
        cache: ValueCache,
        categories: CategoryResolver,
        regions: list[str] | None = None,
        max_page_fetches: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.categories = categories
        self.regions = [code.upper() for code in (regions or config.GLOBAL_REGIONS)]
        self.max_page_fetches = max_page_fetches or config.MAX_PAGE_FETCHES

    async def _region_category(self, region: str, category_title: str) -> str | None:
        try:
            return await self.categories.resolve(region, category_title)
        except YouTubeError as exc:
            log.warning("category resolution failed region=%s title=%s: %s", region, category_title, exc)
            return None

    async def _region_chart(
        self,
        region: str,
        category_id: str | None,
        wanted: int,
        threshold_seconds: int,
    ) -> list[NormalizedVideo]:
        try:
            page = await aggregate(
                self.client,
                self.cache,
                MostPopularQuery(region_code=region, category_id=category_id),
                target=wanted,
                threshold_seconds=threshold_seconds,
                max_page_fetches=self.max_page_fetches,
                hydrate_avatars=False,
            )
        except QuotaExceededError:
            raise
        except UpstreamError as exc:
            log.warning("regional chart unavailable region=%s category=%s: %s", region, category_id, exc)
            return []
        return page.items

    async def aggregate_global(
        self,
        target: int,
        threshold_seconds: int,
        category_title: str | None = None,
        category_id: str | None = None,
        prefer_categorized: bool = True,
    ) -> VideoPage:
        target = max(1, target)
        categorized = bool(category_title or category_id)
        collected: list[NormalizedVideo] = []
        seen: set[str] = set()

        for region in self.regions:
            if len(collected) >= target:
                break
            region_category = category_id
            if categorized and not region_category:
                region_category = await self._region_category(region, category_title)
                if not region_category:
                    continue
            videos = await self._region_chart(region, region_category, target - len(collected), threshold_seconds)
            _merge(collected, seen, videos, target)

        if categorized and len(collected) < target:
            log.info("global category pass short items=%d target=%d, topping up uncategorized", len(collected), target)
            top_up: list[NormalizedVideo] = []
            for region in self.regions:
                if len(collected) + len(top_up) >= target:
                    break
                videos = await self._region_chart(
                    region, None, target - len(collected) - len(top_up), threshold_seconds
                )
                _merge(top_up, seen, videos, target - len(collected))
            collected = collected + top_up if prefer_categorized else top_up + collected

        items = await hydrate_channel_avatars(self.client, self.cache, collected[:target])
        return VideoPage(items=items, next_page_token=None)
