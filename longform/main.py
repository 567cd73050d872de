import logging
import os
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from longform.app import config
from longform.app.services import feeds
from longform.app.services.catalog import CatalogService, build_catalog_service
from longform.app.services.errors import ConfigurationError, QuotaExceededError, YouTubeError
from longform.app.services.metrics import MetricsState
from longform.app.services.rate_limit import SlidingWindowRateLimiter, get_client_ip
from longform.app.services.store import MemoryStore


logging.basicConfig(
    level=logging.DEBUG if config.DEBUG_ENABLED else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger("longform.api")


# ---------------------------
# Process state
# ---------------------------

METRICS = MetricsState()
STORE = MemoryStore()
SERVICE: CatalogService = build_catalog_service(store=STORE, metrics=METRICS)
RATE_LIMITER = SlidingWindowRateLimiter(METRICS)

ERROR_STATUS = {
    "quota_exceeded": 503,
    "not_found": 404,
    "configuration_error": 500,
    "server_error": 500,
}


# ---------------------------
# Helpers
# ---------------------------

def clamp_page_size(value: int | None) -> int:
    if not value:
        return config.DEFAULT_PAGE_SIZE
    return max(1, min(config.MAX_PAGE_SIZE, int(value)))


def clamp_min_duration(value: int | None) -> int:
    floor = config.SHORTS_THRESHOLD_SECONDS + 1
    if not value:
        return floor
    return max(floor, int(value))


def enforce_rate_limit(request: Request) -> None:
    result = RATE_LIMITER.check(get_client_ip(request))
    if not result.allowed:
        raise HTTPException(status_code=429, detail="rate_limited")


def dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True)
    if isinstance(data, list):
        return [dump(item) for item in data]
    return data


def render(outcome: feeds.Outcome) -> Any:
    if isinstance(outcome, feeds.Err):
        return JSONResponse(
            status_code=ERROR_STATUS.get(outcome.kind, 500),
            content={"error": outcome.kind},
        )
    body = dump(outcome.data)
    if not isinstance(body, dict):
        body = {"items": body}
    if outcome.meta:
        body["meta"] = outcome.meta
    if isinstance(outcome, feeds.Fallback):
        body["fallbackReason"] = outcome.reason
        if outcome.reason == "quota_exceeded":
            body["error"] = "quota_exceeded"
    return body


class ApiRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(ApiRequest):
    query: str | None = None
    page_token: str | None = None
    region_code: str | None = None
    min_duration_seconds: int | None = None
    page_size: int | None = None


class RelatedRequest(ApiRequest):
    video_id: str | None = None
    page_token: str | None = None
    min_duration_seconds: int | None = None
    page_size: int | None = None


# ---------------------------
# App setup
# ---------------------------

def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:3000"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:3000"], True
    return origins, True


app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QuotaExceededError)
async def youtube_quota_exceeded_handler(_request: Request, _exc: QuotaExceededError):
    METRICS.record_quota_cooling_event()
    return JSONResponse(status_code=503, content={"error": "quota_exceeded"})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(_request: Request, exc: ConfigurationError):
    log.error("configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "configuration_error"})


# ---------------------------
# Routes
# ---------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.post("/api/search")
async def search(payload: SearchRequest, request: Request):
    enforce_rate_limit(request)
    query = (payload.query or "").strip()
    if not query:
        return JSONResponse(status_code=400, content={"error": "missing_query"})
    outcome = await feeds.search_feed(
        SERVICE,
        query,
        payload.page_token,
        payload.region_code,
        clamp_page_size(payload.page_size),
        clamp_min_duration(payload.min_duration_seconds),
    )
    return render(outcome)


@app.get("/api/mostPopular")
async def most_popular(
    request: Request,
    region_code: str = Query("US", alias="regionCode"),
    page_token: str | None = Query(None, alias="pageToken"),
    page_size: int | None = Query(None, alias="pageSize"),
    min_duration_seconds: int | None = Query(None, alias="minDurationSeconds"),
    category_id: str | None = Query(None, alias="categoryId"),
    category_title: str | None = Query(None, alias="categoryTitle"),
):
    """
    Regional chart feed (videos.list chart=mostPopular) with shorts removed.
    regionCode=GLOBAL merges the charts of the configured regions.
    """
    enforce_rate_limit(request)
    outcome = await feeds.popular_feed(
        SERVICE,
        region_code,
        page_token,
        clamp_page_size(page_size),
        clamp_min_duration(min_duration_seconds),
        category_id=category_id,
        category_title=(category_title or "").strip() or None,
    )
    return render(outcome)


@app.post("/api/related")
async def related(payload: RelatedRequest, request: Request):
    enforce_rate_limit(request)
    video_id = (payload.video_id or "").strip()
    if not video_id:
        return JSONResponse(status_code=400, content={"error": "missing_videoId"})
    outcome = await feeds.related_feed(
        SERVICE,
        video_id,
        payload.page_token,
        clamp_page_size(payload.page_size),
        clamp_min_duration(payload.min_duration_seconds),
    )
    return render(outcome)


@app.get("/api/education")
async def education(
    request: Request,
    page_token: str | None = Query(None, alias="pageToken"),
    page_size: int | None = Query(None, alias="pageSize"),
    min_duration_seconds: int | None = Query(None, alias="minDurationSeconds"),
):
    enforce_rate_limit(request)
    outcome = await feeds.curated_feed(
        SERVICE,
        page_token,
        clamp_page_size(page_size),
        clamp_min_duration(min_duration_seconds),
    )
    return render(outcome)


@app.get("/api/regions")
async def regions(request: Request):
    enforce_rate_limit(request)
    outcome = await feeds.regions_feed(SERVICE)
    if isinstance(outcome, feeds.Ok):
        return {"regions": dump(outcome.data)}
    return render(outcome)


@app.get("/api/videos/{video_id}")
async def video(video_id: str, request: Request):
    enforce_rate_limit(request)
    return render(await feeds.video_detail(SERVICE, video_id))


@app.get("/api/categories/resolve")
async def resolve_category(
    request: Request,
    region_code: str = Query("US", alias="regionCode"),
    title: str = Query(...),
):
    enforce_rate_limit(request)
    title = title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")
    try:
        category_id = await SERVICE.resolve_category_id(region_code, title)
    except QuotaExceededError:
        raise
    except YouTubeError as exc:
        log.error("category resolution failed region=%s title=%s: %s", region_code, title, exc)
        return JSONResponse(status_code=500, content={"error": "server_error"})
    return {"regionCode": region_code.upper(), "title": title, "categoryId": category_id}


@app.get("/admin/usage")
def usage():
    return METRICS.snapshot()
