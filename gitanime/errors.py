from __future__ import annotations

from typing import Optional


class GitAnimeError(Exception):
    """Base class for errors raised by the scraper."""


class FetchError(GitAnimeError):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    CONNECTION = "connection"

    def __init__(self, url: str, kind: str = CONNECTION, status: Optional[int] = None, message: str = ""):
        self.url = url
        self.kind = kind
        self.status = status
        super().__init__(message or f"{kind} while fetching {url}")


class NetworkTimeout(FetchError):
    def __init__(self, url: str, message: str = ""):
        super().__init__(url, kind=FetchError.TIMEOUT, message=message or f"timed out fetching {url}")


class HttpStatusError(FetchError):
    def __init__(self, url: str, status: int, message: str = ""):
        super().__init__(url, kind=FetchError.HTTP_STATUS, status=status, message=message or f"HTTP {status} for {url}")


class ParseFailure(GitAnimeError):
    """Markup could not be parsed at all."""


class NotFound(GitAnimeError):
    pass


class DocumentNotFound(NotFound):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"document {key!r} does not exist")


class Unauthorized(GitAnimeError):
    pass


class BadRequest(GitAnimeError):
    """Missing or malformed request parameter."""
