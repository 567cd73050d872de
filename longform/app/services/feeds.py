"""
Fallback decisions for the request handlers.

Every feed function returns an explicit outcome instead of letting quota or
category failures escape as exceptions:

- Ok(data, meta): the primary source answered.
- Fallback(reason, data, meta): the primary source failed or had nothing for
  the request, and `data` comes from an alternate source (cached chart,
  uncategorized chart, curated catalog).
- Err(kind, message): nothing could be served.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from longform.app import config
from longform.app.services.catalog import CatalogService
from longform.app.services.errors import ConfigurationError, QuotaExceededError, UpstreamError, YouTubeError

log = logging.getLogger("longform.feeds")


@dataclass
class Ok:
    data: Any
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class Fallback:
    reason: str
    data: Any
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class Err:
    kind: str
    message: str = ""


Outcome = Ok | Fallback | Err


def _debug(tag: str, **event: Any) -> None:
    if config.DEBUG_ENABLED:
        log.info("[%s] %s", tag, event)


def _err_from(exc: Exception) -> Err:
    if isinstance(exc, QuotaExceededError):
        return Err("quota_exceeded", str(exc))
    if isinstance(exc, ConfigurationError):
        return Err("configuration_error", str(exc))
    if isinstance(exc, UpstreamError) and exc.status == 404:
        return Err("not_found", exc.message)
    return Err("server_error", str(exc))


def is_curated_title(category_title: str | None) -> bool:
    return bool(category_title) and category_title.strip().lower() == config.CURATED_CATEGORY_TITLE.lower()


async def search_feed(
    service: CatalogService,
    query: str,
    page_token: str | None,
    region_code: str | None,
    target_size: int,
    min_duration_seconds: int,
) -> Outcome:
    try:
        page = await service.search(query, page_token, region_code, target_size, min_duration_seconds)
    except QuotaExceededError:
        service.metrics.record_quota_cooling_event()
        fallback_region = region_code or "US"
        cached = await service.peek_most_popular(fallback_region, target_size, min_duration_seconds)
        if cached is not None:
            _debug("SEARCH", event="QUOTA_COOLING_FALLBACK", query=query, region=fallback_region)
            return Fallback("quota_exceeded", cached, {"source": "popular", "regionCode": fallback_region})
        _debug("SEARCH", event="QUOTA_COOLING_NO_FALLBACK", query=query)
        return Err("quota_exceeded")
    except (YouTubeError, ConfigurationError, ValueError) as exc:
        log.error("search failed query=%r: %s", query, exc)
        return _err_from(exc)
    _debug("SEARCH", event="RESPONSE_SUCCESS", query=query, items=len(page.items))
    return Ok(page, {"source": "search"})


async def _curated_fallback(
    service: CatalogService,
    reason: str,
    target_size: int,
    min_duration_seconds: int,
    region: str,
    category_title: str | None,
) -> Outcome:
    page = await service.curated_catalog_page(None, target_size, min_duration_seconds)
    return Fallback(
        reason,
        page,
        {
            "source": "curated",
            "categoryTitle": category_title,
            "categoryFallback": True,
            "categoryFallbackReason": reason,
            "regionCode": region,
        },
    )


async def popular_feed(
    service: CatalogService,
    region: str,
    page_token: str | None,
    target_size: int,
    min_duration_seconds: int,
    category_id: str | None = None,
    category_title: str | None = None,
) -> Outcome:
    region = (region or "US").upper()
    meta: dict[str, Any] = {
        "source": "category" if (category_id or category_title) else "popular",
        "regionCode": region,
        "categoryTitle": category_title,
        "categoryId": category_id,
        "categoryFallback": False,
        "categoryFallbackReason": None,
    }
    try:
        if region == config.GLOBAL_REGION_CODE:
            page = await service.global_most_popular(
                target_size, min_duration_seconds, category_title=category_title, category_id=category_id
            )
            if not page.items and is_curated_title(category_title):
                return await _curated_fallback(
                    service, "category_unavailable", target_size, min_duration_seconds, region, category_title
                )
            return Ok(page, meta)

        if category_title and not category_id:
            category_id = await service.resolve_category_id(region, category_title)
            meta["categoryId"] = category_id
            if category_id is None:
                if is_curated_title(category_title):
                    return await _curated_fallback(
                        service, "category_unavailable", target_size, min_duration_seconds, region, category_title
                    )
                page = await service.most_popular(region, page_token, target_size, min_duration_seconds)
                meta.update(categoryFallback=True, categoryFallbackReason="category_unavailable", source="popular")
                return Fallback("category_unavailable", page, meta)

        page = await service.most_popular(region, page_token, target_size, min_duration_seconds, category_id)
        return Ok(page, meta)
    except QuotaExceededError:
        service.metrics.record_quota_cooling_event()
        cached = await service.peek_curated_catalog_page(target_size, min_duration_seconds)
        if cached is not None and cached.items:
            _debug("POPULAR", event="QUOTA_COOLING_FALLBACK", region=region)
            return Fallback("quota_exceeded", cached, {**meta, "source": "curated"})
        return Err("quota_exceeded")
    except (YouTubeError, ConfigurationError, ValueError) as exc:
        log.error("popular feed failed region=%s: %s", region, exc)
        return _err_from(exc)


async def related_feed(
    service: CatalogService,
    video_id: str,
    page_token: str | None,
    target_size: int,
    min_duration_seconds: int,
) -> Outcome:
    try:
        page = await service.related(video_id, page_token, target_size, min_duration_seconds)
    except QuotaExceededError:
        service.metrics.record_quota_cooling_event()
        return Err("quota_exceeded")
    except (YouTubeError, ConfigurationError, ValueError) as exc:
        log.error("related feed failed video=%s: %s", video_id, exc)
        return _err_from(exc)
    return Ok(page, {"source": "related"})


async def curated_feed(
    service: CatalogService,
    page_token: str | None,
    target_size: int,
    min_duration_seconds: int,
) -> Outcome:
    try:
        page = await service.curated_catalog_page(page_token, target_size, min_duration_seconds)
    except (YouTubeError, ConfigurationError, ValueError) as exc:
        log.error("curated feed failed: %s", exc)
        return _err_from(exc)
    return Ok(
        page,
        {
            "source": "curated",
            "categoryTitle": config.CURATED_CATEGORY_TITLE,
            "categoryFallback": False,
            "totalAvailable": page.total_available,
            "regionCode": config.GLOBAL_REGION_CODE,
        },
    )


async def video_detail(service: CatalogService, video_id: str) -> Outcome:
    try:
        video = await service.get_video(video_id)
    except (YouTubeError, ConfigurationError, ValueError) as exc:
        log.error("video lookup failed id=%s: %s", video_id, exc)
        return _err_from(exc)
    if video is None:
        return Err("not_found", f"video {video_id} not found")
    return Ok(video)


async def regions_feed(service: CatalogService) -> Outcome:
    try:
        return Ok(await service.regions())
    except (YouTubeError, ConfigurationError) as exc:
        log.error("regions lookup failed: %s", exc)
        return _err_from(exc)
