import logging
import re

from longform.app import config
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import YouTubeClient

log = logging.getLogger("longform.categories")

NO_CATEGORY = "__none__"


def slugify(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (title or "").strip().lower()).strip("-")


def category_key(region: str, title: str) -> str:
    return f"category:{(region or '').upper()}:{slugify(title)}"


class CategoryResolver:
    """
    Maps a category display title ("Education") to the region's videoCategoryId.
    Misses are cached too, under a shorter TTL, so a region that lacks the
    category costs one videoCategories call per miss TTL instead of one per
    request.
    """

    def __init__(
        self,
        client: YouTubeClient,
        cache: ValueCache,
        ttl_seconds: int | None = None,
        miss_ttl_seconds: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.ttl_seconds = ttl_seconds or config.CATEGORY_CACHE_TTL_SECONDS
        self.miss_ttl_seconds = miss_ttl_seconds or config.CATEGORY_MISS_TTL_SECONDS

    async def resolve(self, region: str, title: str) -> str | None:
        region = (region or "").upper()
        found = await self.cache.get_or_load(
            category_key(region, title),
            lambda: self._lookup(region, title),
            self._ttl_for,
        )
        return None if found == NO_CATEGORY else found

    def _ttl_for(self, value: str) -> int:
        return self.miss_ttl_seconds if value == NO_CATEGORY else self.ttl_seconds

    async def _lookup(self, region: str, title: str) -> str:
        wanted = slugify(title)
        for category in await self.client.list_video_categories(region):
            if category.snippet.assignable and slugify(category.snippet.title) == wanted:
                log.debug("category resolved region=%s title=%s id=%s", region, title, category.id)
                return category.id
        log.info("category not available region=%s title=%s", region, title)
        return NO_CATEGORY
