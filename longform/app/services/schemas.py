import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

log = logging.getLogger("longform.schemas")

M = TypeVar("M", bound=BaseModel)


# ---------------------------
# Upstream (YouTube Data API v3) records
# ---------------------------

class UpstreamModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ThumbnailResource(UpstreamModel):
    url: str
    width: int | None = None
    height: int | None = None


class VideoSnippet(UpstreamModel):
    title: str = ""
    description: str = ""
    thumbnails: dict[str, ThumbnailResource] = Field(default_factory=dict)
    channel_title: str = ""
    channel_id: str = ""
    published_at: str = ""


class VideoContentDetails(UpstreamModel):
    duration: str


class VideoStatistics(UpstreamModel):
    view_count: int | None = None
    like_count: int | None = None


class VideoResource(UpstreamModel):
    id: str
    snippet: VideoSnippet
    content_details: VideoContentDetails
    statistics: VideoStatistics | None = None


class SearchResultId(UpstreamModel):
    kind: str | None = None
    video_id: str | None = None


class SearchResult(UpstreamModel):
    id: SearchResultId


class RelatedPlaylists(UpstreamModel):
    uploads: str | None = None


class ChannelContentDetails(UpstreamModel):
    related_playlists: RelatedPlaylists = Field(default_factory=RelatedPlaylists)


class ChannelSnippet(UpstreamModel):
    title: str = ""
    thumbnails: dict[str, ThumbnailResource] = Field(default_factory=dict)


class ChannelResource(UpstreamModel):
    id: str
    snippet: ChannelSnippet | None = None
    content_details: ChannelContentDetails | None = None


class PlaylistItemContentDetails(UpstreamModel):
    video_id: str | None = None


class PlaylistItemResource(UpstreamModel):
    content_details: PlaylistItemContentDetails | None = None


class VideoCategorySnippet(UpstreamModel):
    title: str = ""
    assignable: bool = False


class VideoCategoryResource(UpstreamModel):
    id: str
    snippet: VideoCategorySnippet


class RegionSnippet(UpstreamModel):
    gl: str
    name: str


class RegionResource(UpstreamModel):
    id: str
    snippet: RegionSnippet


class ListEnvelope(UpstreamModel):
    items: list[Any] = Field(default_factory=list)
    next_page_token: str | None = None


def parse_items(payload: dict[str, Any], model: type[M]) -> tuple[list[M], str | None]:
    """
    Validate each item of a list response against `model`.
    Records that do not fit the schema are logged and dropped, the rest of the
    page is kept.
    """
    envelope = ListEnvelope.model_validate(payload or {})
    parsed: list[M] = []
    for raw in envelope.items:
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as exc:
            log.warning(
                "rejected upstream %s record id=%s errors=%d",
                model.__name__,
                raw.get("id") if isinstance(raw, dict) else None,
                exc.error_count(),
            )
    return parsed, envelope.next_page_token or None


# ---------------------------
# Canonical records served to callers
# ---------------------------

class OutputModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Thumbnail(OutputModel):
    url: str
    width: int | None = None
    height: int | None = None


class NormalizedVideo(OutputModel):
    id: str
    title: str
    description: str
    thumbnails: dict[str, Thumbnail] = Field(default_factory=dict)
    duration_sec: int = Field(ge=0)
    channel_title: str
    channel_id: str
    published_at: str
    view_count: int = Field(ge=0)
    like_count: int | None = None
    channel_avatar_url: str | None = None


class ChannelInfo(OutputModel):
    id: str
    title: str
    avatar_url: str | None = None


class VideoPage(OutputModel):
    items: list[NormalizedVideo] = Field(default_factory=list)
    next_page_token: str | None = None


class CuratedPage(VideoPage):
    total_available: int = 0


class Region(OutputModel):
    code: str
    name: str
