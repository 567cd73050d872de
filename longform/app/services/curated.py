import asyncio
import functools
import hashlib
import logging
from typing import Any

from longform.app import config
from longform.app.services.errors import YouTubeError
from longform.app.services.normalizer import hydrate_channel_avatars, hydrate_videos
from longform.app.services.schemas import NormalizedVideo
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import MAX_IDS_PER_CALL, YouTubeClient, chunked

log = logging.getLogger("longform.curated")

CATALOG_KEY = "curated:catalog"


def uploads_key(channel_ids: list[str]) -> str:
    sig = hashlib.sha1(",".join(sorted(channel_ids)).encode("utf-8")).hexdigest()
    return f"curated:uploads:{sig}"


class CuratedCatalogBuilder:
    """
    Builds the curated fallback feed from a fixed list of editorial channels:
    uploads playlist per channel -> most recent ids -> hydrated videos, newest
    first. One channel failing is logged and skipped.
    """

    def __init__(
        self,
        client: YouTubeClient,
        cache: ValueCache,
        channel_ids: list[str] | None = None,
        per_channel_cap: int | None = None,
        max_items: int | None = None,
        ttl_seconds: int | None = None,
        partial_ttl_seconds: int | None = None,
        uploads_ttl_seconds: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.channel_ids = list(dict.fromkeys(channel_ids if channel_ids is not None else config.CURATED_CHANNEL_IDS))
        self.per_channel_cap = per_channel_cap or config.CURATED_PER_CHANNEL_CAP
        self.max_items = max_items or config.CURATED_MAX_ITEMS
        self.ttl_seconds = ttl_seconds or config.CURATED_CACHE_TTL_SECONDS
        self.partial_ttl_seconds = partial_ttl_seconds or config.CURATED_PARTIAL_TTL_SECONDS
        self.uploads_ttl_seconds = uploads_ttl_seconds or config.CURATED_UPLOADS_TTL_SECONDS

    async def resolve_uploads(self) -> dict[str, str]:
        uploads: dict[str, str] = {}
        for batch in chunked(self.channel_ids, MAX_IDS_PER_CALL):
            mapping = await self.cache.get_or_load(
                uploads_key(batch),
                functools.partial(self.client.list_channel_uploads, batch),
                self.uploads_ttl_seconds,
            )
            uploads.update(mapping)
        return uploads

    async def _recent_ids(self, channel_id: str, playlist_id: str | None) -> list[str]:
        if not playlist_id:
            log.warning("curated channel has no uploads playlist channel=%s", channel_id)
            return []
        return await self.client.list_playlist_items(playlist_id, self.per_channel_cap)

    async def build_with_status(self) -> tuple[list[NormalizedVideo], int]:
        """Return the sorted catalog and how many channels failed while building it."""
        uploads = await self.resolve_uploads()
        results = await asyncio.gather(
            *(self._recent_ids(cid, uploads.get(cid)) for cid in self.channel_ids),
            return_exceptions=True,
        )

        ids: list[str] = []
        seen: set[str] = set()
        failures = 0
        last_error: Exception | None = None
        for channel_id, result in zip(self.channel_ids, results):
            if isinstance(result, YouTubeError):
                failures += 1
                last_error = result
                log.warning("curated channel skipped channel=%s: %s", channel_id, result)
                continue
            if isinstance(result, BaseException):
                raise result
            for video_id in result:
                if len(ids) >= self.max_items:
                    break
                if video_id in seen:
                    continue
                seen.add(video_id)
                ids.append(video_id)

        if not ids and last_error is not None:
            raise last_error

        videos = await hydrate_videos(self.client, ids)
        videos = await hydrate_channel_avatars(self.client, self.cache, videos)
        videos.sort(key=lambda video: video.published_at, reverse=True)
        log.info(
            "curated catalog built items=%d channels=%d failed=%d",
            len(videos), len(self.channel_ids), failures,
        )
        return videos, failures

    async def build(self) -> list[NormalizedVideo]:
        videos, _ = await self.build_with_status()
        return videos

    async def _build_payload(self) -> dict[str, Any]:
        videos, failures = await self.build_with_status()
        return {
            "items": [video.model_dump(by_alias=True) for video in videos],
            "partial": failures > 0,
        }

    def _ttl_for(self, payload: dict[str, Any]) -> int:
        return self.partial_ttl_seconds if payload.get("partial") else self.ttl_seconds

    async def get_catalog(self) -> list[NormalizedVideo]:
        payload = await self.cache.get_or_load(CATALOG_KEY, self._build_payload, self._ttl_for)
        return [NormalizedVideo.model_validate(item) for item in payload.get("items", [])]

    async def peek_catalog(self) -> list[NormalizedVideo] | None:
        payload = await self.cache.peek(CATALOG_KEY)
        if payload is None:
            return None
        return [NormalizedVideo.model_validate(item) for item in payload.get("items", [])]

    async def invalidate(self) -> None:
        await self.cache.invalidate(CATALOG_KEY)
