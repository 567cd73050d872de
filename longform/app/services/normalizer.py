import asyncio
import functools
import logging
from typing import Any

from longform.app import config
from longform.app.services.duration import parse_duration
from longform.app.services.errors import YouTubeError
from longform.app.services.schemas import (
    ChannelInfo,
    ChannelResource,
    NormalizedVideo,
    Thumbnail,
    ThumbnailResource,
    VideoResource,
)
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import MAX_IDS_PER_CALL, YouTubeClient, chunked

log = logging.getLogger("longform.normalizer")

AVATAR_PREFERENCE = ("high", "medium", "default")


def channel_key(channel_id: str) -> str:
    return f"channel:{channel_id}"


def normalize_video(record: VideoResource | dict[str, Any]) -> NormalizedVideo:
    if not isinstance(record, VideoResource):
        record = VideoResource.model_validate(record)
    snip = record.snippet
    stats = record.statistics
    view_count = stats.view_count if stats and stats.view_count is not None else 0
    return NormalizedVideo(
        id=record.id,
        title=snip.title,
        description=snip.description,
        thumbnails={
            name: Thumbnail(url=thumb.url, width=thumb.width, height=thumb.height)
            for name, thumb in snip.thumbnails.items()
        },
        duration_sec=parse_duration(record.content_details.duration),
        channel_title=snip.channel_title,
        channel_id=snip.channel_id,
        published_at=snip.published_at,
        view_count=max(0, view_count),
        # None means "no data", which is not the same thing as zero likes.
        like_count=stats.like_count if stats else None,
    )


def normalize_videos(records: list[VideoResource]) -> list[NormalizedVideo]:
    return [normalize_video(record) for record in records]


def order_like(ids: list[str], videos: list[NormalizedVideo]) -> list[NormalizedVideo]:
    """videos.list does not promise request order; put results back in `ids` order."""
    by_id = {video.id: video for video in videos}
    return [by_id[vid] for vid in ids if vid in by_id]


async def hydrate_videos(client: YouTubeClient, ids: list[str]) -> list[NormalizedVideo]:
    hydrated: list[NormalizedVideo] = []
    for batch in chunked(ids, MAX_IDS_PER_CALL):
        hydrated.extend(normalize_videos(await client.list_videos_by_ids(batch)))
    return order_like(ids, hydrated)


def best_avatar_url(thumbnails: dict[str, ThumbnailResource]) -> str | None:
    for key in AVATAR_PREFERENCE:
        thumb = thumbnails.get(key)
        if thumb and thumb.url:
            return thumb.url
    return None


def to_channel_info(channel: ChannelResource) -> ChannelInfo:
    snippet = channel.snippet
    return ChannelInfo(
        id=channel.id,
        title=snippet.title if snippet else "",
        avatar_url=best_avatar_url(snippet.thumbnails) if snippet else None,
    )


class _ChannelBatch:
    """One channels.list call shared by every id of a batch, started lazily."""

    def __init__(self, client: YouTubeClient, ids: list[str]) -> None:
        self.client = client
        self.ids = ids
        self._task: asyncio.Task | None = None

    async def _run(self) -> dict[str, ChannelInfo]:
        channels = await self.client.list_channels(self.ids)
        return {channel.id: to_channel_info(channel) for channel in channels}

    async def load(self, channel_id: str) -> dict[str, Any]:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        infos = await asyncio.shield(self._task)
        info = infos.get(channel_id) or ChannelInfo(id=channel_id, title="")
        return info.model_dump(by_alias=True)


async def fetch_channel_infos(
    client: YouTubeClient,
    cache: ValueCache,
    channel_ids: list[str],
    ttl_seconds: int | None = None,
    max_batch: int = MAX_IDS_PER_CALL,
) -> dict[str, ChannelInfo]:
    ttl = ttl_seconds or config.CHANNEL_CACHE_TTL_SECONDS
    distinct = list(dict.fromkeys(cid for cid in channel_ids if cid))
    resolved: dict[str, ChannelInfo] = {}
    for batch_ids in chunked(distinct, max(1, min(max_batch, MAX_IDS_PER_CALL))):
        batch = _ChannelBatch(client, batch_ids)
        payloads = await asyncio.gather(
            *(
                cache.get_or_load(channel_key(cid), functools.partial(batch.load, cid), ttl)
                for cid in batch_ids
            )
        )
        for cid, payload in zip(batch_ids, payloads):
            resolved[cid] = ChannelInfo.model_validate(payload)
    return resolved


async def hydrate_channel_avatars(
    client: YouTubeClient,
    cache: ValueCache,
    videos: list[NormalizedVideo],
    max_batch: int = MAX_IDS_PER_CALL,
) -> list[NormalizedVideo]:
    if not videos:
        return videos
    try:
        infos = await fetch_channel_infos(client, cache, [v.channel_id for v in videos], max_batch=max_batch)
    except YouTubeError as exc:
        log.warning("channel avatar hydration skipped: %s", exc)
        return videos
    hydrated = []
    for video in videos:
        info = infos.get(video.channel_id)
        if info and info.avatar_url:
            video = video.model_copy(update={"channel_avatar_url": info.avatar_url})
        hydrated.append(video)
    return hydrated
