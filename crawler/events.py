"""
Events passed to the crawler hooks. A hook vetoes by calling ``ignore()``.
"""


class CrawlerEvent:
    def __init__(self):
        self.accepted = True

    @property
    def is_ignored(self) -> bool:
        return not self.accepted

    def accept(self):
        self.accepted = True

    def ignore(self):
        self.accepted = False


class RequestEvent(CrawlerEvent):
    """Emitted right before a request is sent; ``effective_url`` may be rewritten."""

    def __init__(self, request, effective_url: str):
        super().__init__()
        self.request = request
        self.effective_url = effective_url

    @property
    def effective_url(self) -> str:
        return self._effective_url

    @effective_url.setter
    def effective_url(self, url: str):
        self._effective_url = url.strip()


class RedirectEvent(CrawlerEvent):
    """Emitted before a redirect is followed; ``location`` may be rewritten.

    ``count`` is the 1-based hop number within the current chain.
    """

    def __init__(self, location: str, status_code: int = 301, count: int = 1):
        super().__init__()
        self.location = location
        self.status_code = status_code
        self.count = count

    def __repr__(self) -> str:
        return f"RedirectEvent(location={self.location!r}, status_code={self.status_code}, count={self.count})"


class DownloadEvent(CrawlerEvent):
    def __init__(self, destination: str, response):
        super().__init__()
        self.destination = destination
        self.response = response
