import re
from typing import Iterable, TypeVar

from longform.app.services.errors import MalformedDurationError


SHORTS_THRESHOLD_SECONDS = 60

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

T = TypeVar("T")


def parse_duration(value: str) -> int:
    """
    Decode a YouTube contentDetails.duration (PT#H#M#S) into seconds.
    Raises MalformedDurationError instead of defaulting to 0, since a bad
    value read as 0 would hide a long video behind the shorts filter.
    """
    if not isinstance(value, str):
        raise MalformedDurationError(value)
    match = _DURATION_RE.match(value)
    if not match:
        raise MalformedDurationError(value)
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def format_duration(total_seconds: int) -> str:
    if total_seconds < 0:
        raise ValueError("duration must be non-negative")
    hours, rest = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(rest, 60)
    out = "PT"
    if hours:
        out += f"{hours}H"
    if minutes:
        out += f"{minutes}M"
    if seconds or out == "PT":
        out += f"{seconds}S"
    return out


def is_short(duration_seconds: int, threshold_seconds: int = SHORTS_THRESHOLD_SECONDS) -> bool:
    return duration_seconds <= threshold_seconds


def filter_out_shorts(items: Iterable[T], threshold_seconds: int = SHORTS_THRESHOLD_SECONDS) -> list[T]:
    return [item for item in items if not is_short(item.duration_sec, threshold_seconds)]
