import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

import requests
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from longform.app import config
from longform.app.services.errors import ConfigurationError, QuotaExceededError, UpstreamError
from longform.app.services.metrics import MetricsState
from longform.app.services.schemas import (
    ChannelResource,
    PlaylistItemResource,
    RegionResource,
    SearchResult,
    VideoCategoryResource,
    VideoResource,
    parse_items,
)
from longform.app.services.store import KeyValueStore

log = logging.getLogger("longform.youtube_client")

MAX_IDS_PER_CALL = 50
QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded"}
RAW_KEY_PREFIX = "yt:raw:"


def chunked(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


class _TransientError(Exception):
    def __init__(self, status: int | None, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


def _error_details(response) -> tuple[str, list[str]]:
    try:
        data = response.json()
    except ValueError:
        data = None
    error = (data or {}).get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return (response.text or f"HTTP {response.status_code}")[:300], []
    reasons = [
        str(item.get("reason"))
        for item in (error.get("errors") or [])
        if isinstance(item, dict) and item.get("reason")
    ]
    return str(error.get("message") or f"HTTP {response.status_code}"), reasons


class YouTubeClient:
    """
    Outbound calls to the YouTube Data API v3.

    `fetch` is the one place that talks HTTP: it builds the URL from sorted
    params with the key appended last, retries 5xx/transport failures with
    linear backoff, raises QuotaExceededError right away, and does ETag
    revalidation against the raw cache when given a revalidation key.
    The typed helpers below it each cost exactly one metered call.
    """

    def __init__(
        self,
        cache: KeyValueStore,
        metrics: MetricsState,
        api_key: str | None = None,
        base_url: str | None = None,
        session=None,
        retry_delay: float | None = None,
        max_attempts: int = 3,
        timeout: int | None = None,
        raw_ttl_seconds: int | None = None,
    ) -> None:
        self.cache = cache
        self.metrics = metrics
        self.api_key = api_key if api_key is not None else config.YOUTUBE_API_KEY
        self.base_url = (base_url or config.YOUTUBE_API_BASE).rstrip("/")
        self.session = session or requests.Session()
        self.retry_delay = config.RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.max_attempts = max_attempts
        self.timeout = timeout or config.REQUEST_TIMEOUT_SECONDS
        self.raw_ttl_seconds = raw_ttl_seconds or config.RAW_CACHE_TTL_SECONDS

    @staticmethod
    def signature(endpoint: str, params: dict[str, Any]) -> str:
        clean = sorted((k, str(v)) for k, v in params.items() if k != "key" and v is not None)
        return f"{endpoint}?{urlencode(clean)}"

    def _require_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("Missing YOUTUBE_API_KEY")
        return self.api_key

    async def fetch(self, endpoint: str, params: dict[str, Any], revalidation_key: str | None = None) -> dict[str, Any]:
        api_key = self._require_key()
        query = sorted((k, str(v)) for k, v in params.items() if k != "key" and v is not None)
        query.append(("key", api_key))
        url = f"{self.base_url}/{endpoint}"
        sig = self.signature(endpoint, params)
        raw_key = f"{RAW_KEY_PREFIX}{revalidation_key}" if revalidation_key else None

        etag = None
        if raw_key:
            entry = await self.cache.get(raw_key)
            if entry:
                etag = entry.get("etag")

        self.metrics.record_data_api_call(endpoint)
        response = await self._send(sig, url, query, etag)

        if response.status_code == 304:
            entry = await self.cache.get(raw_key) if raw_key else None
            if entry is not None:
                await self.cache.set(raw_key, entry, self.raw_ttl_seconds)
                log.debug("not modified %s", sig)
                return entry["payload"]
            log.info("revalidation entry evicted, refetching %s", sig)
            self.metrics.record_data_api_call(endpoint)
            response = await self._send(sig, url, query, None)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(response.status_code, "YouTube returned a non-JSON body") from exc
        if raw_key:
            new_etag = response.headers.get("ETag") or (payload or {}).get("etag")
            await self.cache.set(raw_key, {"payload": payload, "etag": new_etag}, self.raw_ttl_seconds)
        return payload

    async def _send(self, sig: str, url: str, query: list[tuple[str, str]], etag: str | None):
        headers = {"Accept": "application/json"}
        if etag:
            headers["If-None-Match"] = etag

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception_type(_TransientError),
            before_sleep=lambda state: log.info(
                "retrying %s attempt=%d after %s", sig, state.attempt_number, state.outcome.exception()
            ),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._request(url, query, headers)
                    self._check_response(response)
        except _TransientError as exc:
            log.warning("upstream failed %s status=%s", sig, exc.status)
            raise UpstreamError(exc.status, exc.message) from exc
        return response

    async def _request(self, url: str, query: list[tuple[str, str]], headers: dict[str, str]):
        try:
            return await asyncio.to_thread(
                self.session.get, url, params=query, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise _TransientError(None, f"YouTube is temporarily unavailable: {exc.__class__.__name__}") from exc

    def _check_response(self, response) -> None:
        status = response.status_code
        if 200 <= status < 300 or status == 304:
            return
        message, reasons = _error_details(response)
        lowered = (response.text or "").lower()
        if QUOTA_REASONS.intersection(reasons) or (
            status in {403, 429} and ("quotaexceeded" in lowered or "youtube.quota" in lowered)
        ):
            raise QuotaExceededError()
        if status >= 500:
            raise _TransientError(status, message)
        raise UpstreamError(status, message)

    # ---------------------------
    # Logical operations
    # ---------------------------

    async def list_videos_by_ids(self, ids: list[str]) -> list[VideoResource]:
        if not ids:
            return []
        if len(ids) > MAX_IDS_PER_CALL:
            raise ValueError(f"at most {MAX_IDS_PER_CALL} ids per videos.list call")
        payload = await self.fetch(
            "videos",
            {
                "part": "snippet,contentDetails,statistics",
                "id": ",".join(ids),
                "maxResults": MAX_IDS_PER_CALL,
            },
        )
        videos, _ = parse_items(payload, VideoResource)
        return videos

    async def search_videos(
        self,
        query: str,
        page_token: str | None = None,
        region_code: str | None = None,
        max_results: int | None = None,
    ) -> tuple[list[str], str | None]:
        payload = await self.fetch(
            "search",
            {
                "part": "id",
                "type": "video",
                "q": query,
                "maxResults": max_results or config.UPSTREAM_PAGE_SIZE,
                "videoEmbeddable": "true",
                "safeSearch": "none",
                "pageToken": page_token,
                "regionCode": region_code,
            },
        )
        results, next_token = parse_items(payload, SearchResult)
        return [r.id.video_id for r in results if r.id.video_id], next_token

    async def list_most_popular(
        self,
        region_code: str,
        page_token: str | None = None,
        category_id: str | None = None,
        max_results: int | None = None,
    ) -> tuple[list[VideoResource], str | None]:
        params = {
            "part": "snippet,contentDetails,statistics",
            "chart": "mostPopular",
            "regionCode": region_code,
            "maxResults": max_results or config.UPSTREAM_PAGE_SIZE,
            "videoCategoryId": category_id,
            "pageToken": page_token,
        }
        payload = await self.fetch("videos", params, revalidation_key=self.signature("videos", params))
        return parse_items(payload, VideoResource)

    async def search_related(
        self,
        video_id: str,
        page_token: str | None = None,
        max_results: int | None = None,
    ) -> tuple[list[str], str | None]:
        payload = await self.fetch(
            "search",
            {
                "part": "id",
                "type": "video",
                "relatedToVideoId": video_id,
                "maxResults": max_results or config.UPSTREAM_PAGE_SIZE,
                "videoEmbeddable": "true",
                "pageToken": page_token,
            },
        )
        results, next_token = parse_items(payload, SearchResult)
        return [r.id.video_id for r in results if r.id.video_id], next_token

    async def list_channels(self, ids: list[str]) -> list[ChannelResource]:
        if not ids:
            return []
        params = {"part": "snippet", "id": ",".join(ids), "maxResults": MAX_IDS_PER_CALL}
        payload = await self.fetch("channels", params, revalidation_key=self.signature("channels", params))
        channels, _ = parse_items(payload, ChannelResource)
        return channels

    async def list_channel_uploads(self, ids: list[str]) -> dict[str, str]:
        if not ids:
            return {}
        params = {"part": "contentDetails", "id": ",".join(ids), "maxResults": MAX_IDS_PER_CALL}
        payload = await self.fetch("channels", params, revalidation_key=self.signature("channels", params))
        channels, _ = parse_items(payload, ChannelResource)
        uploads: dict[str, str] = {}
        for channel in channels:
            playlist = channel.content_details.related_playlists.uploads if channel.content_details else None
            if playlist:
                uploads[channel.id] = playlist
        return uploads

    async def list_playlist_items(self, playlist_id: str, max_results: int) -> list[str]:
        payload = await self.fetch(
            "playlistItems",
            {
                "part": "contentDetails",
                "playlistId": playlist_id,
                "maxResults": max(1, min(MAX_IDS_PER_CALL, max_results)),
            },
        )
        items, _ = parse_items(payload, PlaylistItemResource)
        ids = [item.content_details.video_id for item in items if item.content_details and item.content_details.video_id]
        return ids[:max_results]

    async def list_video_categories(self, region_code: str) -> list[VideoCategoryResource]:
        params = {"part": "snippet", "regionCode": region_code}
        payload = await self.fetch("videoCategories", params, revalidation_key=self.signature("videoCategories", params))
        categories, _ = parse_items(payload, VideoCategoryResource)
        return categories

    async def list_regions(self) -> list[RegionResource]:
        params = {"part": "snippet"}
        payload = await self.fetch("i18nRegions", params, revalidation_key=self.signature("i18nRegions", params))
        regions, _ = parse_items(payload, RegionResource)
        return regions
