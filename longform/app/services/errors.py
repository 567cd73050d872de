class YouTubeError(Exception):
    """Base class for failures talking to the YouTube Data API."""


class QuotaExceededError(YouTubeError):
    def __init__(self, message: str = "YouTube API quota exceeded"):
        super().__init__(message)


class UpstreamError(YouTubeError):
    def __init__(self, status: int | None, message: str):
        super().__init__(f"YouTube API error {status}: {message}" if status else message)
        self.status = status
        self.message = message


class MalformedDurationError(ValueError):
    def __init__(self, value):
        super().__init__(f"Invalid ISO8601 duration: {value!r}")
        self.value = value


class ConfigurationError(RuntimeError):
    pass
