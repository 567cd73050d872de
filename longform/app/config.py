import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


YOUTUBE_API_KEY = (os.getenv("YOUTUBE_API_KEY") or "").strip() or None
YOUTUBE_API_BASE = (os.getenv("YOUTUBE_API_BASE") or "https://www.googleapis.com/youtube/v3").rstrip("/")

CACHE_TTL_SECONDS = _env_int("CACHE_TTL_SECONDS", 60 * 60 * 6)  # 6 hours
RAW_CACHE_TTL_SECONDS = _env_int("RAW_CACHE_TTL_SECONDS", 60 * 60 * 6)
CHANNEL_CACHE_TTL_SECONDS = _env_int("CHANNEL_CACHE_TTL_SECONDS", 60 * 60 * 24)
CATEGORY_CACHE_TTL_SECONDS = _env_int("CATEGORY_CACHE_TTL_SECONDS", 60 * 60 * 24 * 7)
CATEGORY_MISS_TTL_SECONDS = _env_int("CATEGORY_MISS_TTL_SECONDS", 60 * 60 * 6)
REGIONS_CACHE_TTL_SECONDS = _env_int("REGIONS_CACHE_TTL_SECONDS", 60 * 60 * 24 * 7)

CURATED_CACHE_TTL_SECONDS = _env_int("CURATED_CACHE_TTL_SECONDS", 60 * 60 * 6)
CURATED_PARTIAL_TTL_SECONDS = _env_int("CURATED_PARTIAL_TTL_SECONDS", 15 * 60)
CURATED_UPLOADS_TTL_SECONDS = _env_int("CURATED_UPLOADS_TTL_SECONDS", 60 * 60 * 24 * 7)
CURATED_PER_CHANNEL_CAP = _env_int("CURATED_PER_CHANNEL_CAP", 15)
CURATED_MAX_ITEMS = _env_int("CURATED_MAX_ITEMS", 150)

# Long-form education creators used for the curated fallback feed.
CURATED_CHANNEL_IDS = _env_list(
    "CURATED_CHANNEL_IDS",
    [
        "UCX6b17PVsYBQ0ip5gyeme-Q",  # Khan Academy
        "UC4a-Gbdw7vOaccHmFo40b9g",  # CrashCourse
        "UC9-y-6csu5WGm29I7JiwpnA",  # Kurzgesagt
        "UC6nSFpj9HTCZ5t-N3Rm3-HA",  # Veritasium
        "UCsXVk37bltHxD1rDPwtNM8Q",  # TED-Ed
        "UCZYTClx2T1of7BRZ86-8fow",  # SciShow
        "UCiDJtJKMICpb9B1qf7qjEOA",  # 3Blue1Brown
        "UCPHnEGKK0wpOXw4dqmHPm_w",  # Numberphile
        "UC-sGorAVt79iThhIlwX2tsA",  # SmarterEveryDay
        "UCoxcjq-8xIDTYp3uz647V5A",  # Vsauce
    ],
)
CURATED_CATEGORY_TITLE = "Education"

MAX_PAGE_FETCHES = _env_int("MAX_PAGE_FETCHES", 5)
UPSTREAM_PAGE_SIZE = _env_int("UPSTREAM_PAGE_SIZE", 50)
DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 24)
MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 50)
SHORTS_THRESHOLD_SECONDS = _env_int("SHORTS_THRESHOLD_SECONDS", 60)

RETRY_DELAY_SECONDS = _env_float("RETRY_DELAY_SECONDS", 0.5)
REQUEST_TIMEOUT_SECONDS = _env_int("REQUEST_TIMEOUT_SECONDS", 15)

GLOBAL_REGION_CODE = "GLOBAL"
GLOBAL_REGIONS = [code.upper() for code in _env_list("GLOBAL_REGIONS", ["US", "GB", "CA", "AU", "IN"])]

RATE_LIMIT_MAX_REQUESTS = _env_int("RATE_LIMIT_MAX_REQUESTS", 60)
RATE_LIMIT_WINDOW_SECONDS = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)

DEBUG_ENABLED = (os.getenv("LONGFORM_DEBUG") or "").strip().lower() in {"1", "true", "yes"}
