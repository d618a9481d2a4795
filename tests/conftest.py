import httpx
import pytest

from crawler.context import Crawler
from crawler.fetcher import HTTPFetcher


def text(body="", status_code=200, headers=None):
    def handler(request):
        return httpx.Response(status_code, text=body, headers=headers)
    return handler


def redirect(location, status_code=302, body="moved"):
    return text(body, status_code, {"Location": location})


class Server:
    """Routes mocked requests by path and records everything it receives."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def route(self, path, handler):
        self.routes[path] = handler

    def __call__(self, request):
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    @property
    def paths(self):
        return [request.url.path for request in self.requests]


@pytest.fixture
def server():
    return Server()


@pytest.fixture
def fetcher_factory(server):
    return lambda: HTTPFetcher(transport=httpx.MockTransport(server))


@pytest.fixture
def crawler(fetcher_factory):
    crawler = Crawler("example.org", transport_factory=fetcher_factory)
    yield crawler
    crawler.close()
