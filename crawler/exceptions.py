"""
Error taxonomy of the crawler.

Transport-level failures (no HTTP response was obtained) derive from
TransportError. A response with a failing status code is never an error:
its status is surfaced on the Response object instead.
"""

from typing import List, Optional


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""
    pass


class TransportError(CrawlerError):
    """Raised when an exchange fails before a response is obtained."""

    def __init__(self, url: Optional[str], message: Optional[str] = None, code: int = 0):
        super().__init__(message or "Transport error occurred.")
        self.url = url
        self.code = code


class TransportInitError(TransportError):
    """Raised when the transport handle could not be allocated."""

    def __init__(self, message: Optional[str] = None, code: int = 2):
        super().__init__(None, message or "Could not initialize the transport.", code)


class RequestTimeoutError(TransportError):
    """Raised when an exchange exceeds one of its timeouts."""

    def __init__(self, url: Optional[str], message: Optional[str] = None, code: int = 28):
        super().__init__(url, message or "Operation timed out.", code)


class RedirectError(CrawlerError):
    """Base class for failures of the redirect state machine."""

    default_message = "Redirect failed."

    def __init__(self, event, chain: Optional[List[str]] = None, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.event = event
        self.chain = list(chain or [])

    @property
    def count(self) -> int:
        return self.event.count

    @property
    def location(self) -> str:
        return self.event.location


class LoopedRedirectError(RedirectError):
    """Raised when a redirect location reappears in the current chain."""

    default_message = "Infinite / looped redirect detected."


class OverflowRedirectError(RedirectError):
    """Raised when the number of redirects exceeds the configured limit."""

    default_message = "The limit of redirects is overflowed."


class PipeError(CrawlerError):
    """Raised by a pipe that wants to abort the pipeline instead of yielding None."""
    pass


class ExtractorError(CrawlerError):
    """Raised when a strict extraction does not match the content."""

    def __init__(self, message: Optional[str] = None, pattern: str = "", url: str = "", content: str = ""):
        super().__init__(message or "Regexp extraction failed.")
        self.pattern = pattern
        self.url = url
        self.content = content

    @property
    def snippet(self) -> str:
        """First 200 characters of the content that failed to match."""
        return self.content[:200]
