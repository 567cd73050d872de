import copy
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable


def iso_days_ago(days: float) -> str:
    return (datetime(2026, 1, 1, tzinfo=timezone.utc) - timedelta(days=days)).isoformat().replace("+00:00", "Z")


def make_video(
    video_id: str,
    duration: str = "PT5M",
    days_ago: float = 1,
    views: int | None = 1000,
    likes: int | None = None,
    channel_id: str = "UC_ONE",
    channel_title: str = "Channel One",
) -> dict:
    statistics: dict[str, str] = {}
    if views is not None:
        statistics["viewCount"] = str(views)
    if likes is not None:
        statistics["likeCount"] = str(likes)
    return {
        "kind": "youtube#video",
        "id": video_id,
        "snippet": {
            "title": f"Video {video_id}",
            "description": f"About {video_id}",
            "publishedAt": iso_days_ago(days_ago),
            "channelId": channel_id,
            "channelTitle": channel_title,
            "thumbnails": {
                "high": {"url": f"https://img/{video_id}.jpg", "width": 480, "height": 360},
            },
        },
        "contentDetails": {"duration": duration},
        "statistics": statistics,
    }


def make_channel(channel_id: str, uploads: str | None = None, avatar: str | None = None) -> dict:
    record: dict[str, Any] = {
        "id": channel_id,
        "snippet": {
            "title": f"Title {channel_id}",
            "thumbnails": {"default": {"url": avatar or f"https://img/{channel_id}.png"}},
        },
        "contentDetails": {"relatedPlaylists": {"uploads": uploads or f"UU{channel_id[2:]}"}},
    }
    return record


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, headers: dict | None = None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self._text = text

    @property
    def text(self) -> str:
        if self._text is not None:
            return self._text
        return json.dumps(self._payload) if self._payload is not None else ""

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return copy.deepcopy(self._payload)


def error_response(status: int, reason: str, message: str = "error") -> FakeResponse:
    return FakeResponse(
        status,
        {"error": {"code": status, "message": message, "errors": [{"reason": reason, "message": message}]}},
    )


class FakeSession:
    """requests.Session stand-in; hands every GET to `handler(endpoint, params, headers)`."""

    def __init__(self, handler: Callable[[str, dict, dict], Any]):
        self.handler = handler
        self.calls: list[dict] = []

    def get(self, url, params=None, headers=None, timeout=None):
        params = list(params or [])
        endpoint = url.rsplit("/", 1)[-1]
        self.calls.append(
            {"url": url, "endpoint": endpoint, "params": dict(params), "ordered": params, "headers": dict(headers or {})}
        )
        result = self.handler(endpoint, dict(params), dict(headers or {}))
        if isinstance(result, Exception):
            raise result
        if isinstance(result, FakeResponse):
            return result
        return FakeResponse(200, result)

    def count(self, endpoint: str | None = None) -> int:
        if endpoint is None:
            return len(self.calls)
        return sum(1 for call in self.calls if call["endpoint"] == endpoint)


class FakeYouTube:
    """
    Canned YouTube Data API. Pages are keyed by pageToken (None = first page)
    and hold (ids, nextPageToken).
    """

    def __init__(self):
        self.videos: dict[str, dict] = {}
        self.search_pages: dict[str | None, tuple[list[str], str | None]] = {}
        self.related_pages: dict[str | None, tuple[list[str], str | None]] = {}
        self.chart_pages: dict[tuple[str, str | None, str | None], tuple[list[str], str | None]] = {}
        self.channels: dict[str, dict] = {}
        self.playlists: dict[str, list[str]] = {}
        self.categories: dict[str, list[dict]] = {}
        self.regions: list[dict] = []
        self.overrides: dict[tuple[str, str], Any] = {}

    def add_videos(self, *records: dict) -> None:
        for record in records:
            self.videos[record["id"]] = record

    def fail(self, endpoint: str, key: str, response: Any) -> None:
        self.overrides[(endpoint, key)] = response

    def _override(self, endpoint: str, key: str | None):
        return self.overrides.get((endpoint, key or ""))

    def __call__(self, endpoint: str, params: dict, headers: dict):
        token = params.get("pageToken")
        if endpoint == "search":
            if "relatedToVideoId" in params:
                override = self._override(endpoint, params["relatedToVideoId"])
                if override is not None:
                    return override
                ids, next_token = self.related_pages.get(token, ([], None))
            else:
                override = self._override(endpoint, params.get("q"))
                if override is not None:
                    return override
                ids, next_token = self.search_pages.get(token, ([], None))
            return {
                "items": [{"kind": "youtube#searchResult", "id": {"kind": "youtube#video", "videoId": vid}} for vid in ids],
                "nextPageToken": next_token,
            }

        if endpoint == "videos":
            if params.get("chart") == "mostPopular":
                region = params.get("regionCode")
                category = params.get("videoCategoryId")
                override = self._override(endpoint, f"{region}:{category or ''}")
                if override is not None:
                    return override
                ids, next_token = self.chart_pages.get((region, category, token), ([], None))
                return {
                    "items": [self.videos[vid] for vid in ids if vid in self.videos],
                    "nextPageToken": next_token,
                }
            ids = params.get("id", "").split(",")
            return {"items": [self.videos[vid] for vid in ids if vid in self.videos]}

        if endpoint == "channels":
            ids = params.get("id", "").split(",")
            return {"items": [self.channels[cid] for cid in ids if cid in self.channels]}

        if endpoint == "playlistItems":
            playlist = params.get("playlistId")
            override = self._override(endpoint, playlist)
            if override is not None:
                return override
            limit = int(params.get("maxResults", 50))
            ids = self.playlists.get(playlist, [])[:limit]
            return {"items": [{"contentDetails": {"videoId": vid}} for vid in ids]}

        if endpoint == "videoCategories":
            region = params.get("regionCode")
            override = self._override(endpoint, region)
            if override is not None:
                return override
            return {"items": self.categories.get(region, [])}

        if endpoint == "i18nRegions":
            return {"items": self.regions}

        return FakeResponse(404, {"error": {"code": 404, "message": "unknown endpoint"}})
