"""
The Crawler: a host context that composes URLs, sends requests, follows
redirects, queues cookies and runs response content through pipelines.
"""

import json
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from .config import Config
from .cookies import Cookie
from .events import DownloadEvent, RedirectEvent, RequestEvent
from .exceptions import (CrawlerError, LoopedRedirectError, OverflowRedirectError,
                         TransportInitError)
from .fetcher import (DEFAULT_USER_AGENT, FetchResult, PreparedRequest, Transport, canonical_url,
                      create_fetcher)
from .options import DataType, Method, Option, Options, normalize_methods
from .pipeline import CallbackPipe, JSONPipe, Pipe, Pipeline
from .request import Request
from .response import Response, split_header_lines
from .storage import FileStorage, Owner
from .urls import (build_netloc, build_query, compose_url, complete_url, encode_url,
                   has_trailing_slash, host_matches, merge_queries, parse_query,
                   remove_last_segment, resolve_path, split_url)

logger = structlog.get_logger(__name__)


Methods = Union[str, Iterable[str]]


def _clarify(value: Optional[str]) -> Optional[str]:
    value = value.strip() if value is not None else None
    return value or None


class Crawler(Options):
    """Request context bound to one host.

    Options and headers set on the crawler are copied into every request it
    creates. The transport handle is created lazily on the first exchange.
    """

    request_class = Request
    response_class = Response
    cookie_class = Cookie
    pipeline_class = Pipeline

    def __init__(
        self,
        domain: Optional[str] = None,
        subdomain: Optional[str] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
        on_request: Optional[Callable[[RequestEvent], None]] = None,
        on_redirect: Optional[Callable[[RedirectEvent], None]] = None,
        on_download: Optional[Callable[[DownloadEvent], None]] = None,
    ):
        super().__init__()
        self._domain = ""
        self._subdomain: Optional[str] = None
        self._path: Optional[str] = None
        self.secured = True
        self.query: Optional[Mapping[str, Any]] = None

        self._cookies_queue: List[Cookie] = []
        self._response: Optional[Response] = None
        self._responses: List[Response] = []

        self.redirects_allowed = True
        self._redirects_limit: Optional[int] = 10
        self.persistent = True
        self.strict_path_handling = False
        self.encode_urls = True
        self.verbose = False
        self.default_data_type: Optional[Union[DataType, str]] = None

        self.storage = FileStorage()

        self._pipelines: Dict[str, Pipeline] = {}
        self.pipelines_active = True

        self.transport_factory = transport_factory or create_fetcher
        self._transport: Optional[Transport] = None

        self._on_request = on_request
        self._on_redirect = on_redirect
        self._on_download = on_download

        if domain is not None:
            domain = domain.strip()
            if subdomain is None and domain.lower().startswith("www."):
                subdomain = "www"
                domain = domain[4:]
            self.domain = domain
        if subdomain is not None:
            self.subdomain = subdomain

        self.reset_options()

    def __repr__(self) -> str:
        return f"Crawler(host={self.host()!r}, path={self.path!r})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def reset_options(self):
        self.set_options({
            Option.USER_AGENT: DEFAULT_USER_AGENT,
            Option.VERIFY_SSL: False,
        })

    def configure(self, config: Config):
        """Apply fetcher, redirect, URL and cookie settings from a Config."""
        fetcher = config.fetcher
        if fetcher.get('user_agent'):
            self.user_agent = fetcher['user_agent']
        self.set_timeouts(fetcher.get('timeout'), fetcher.get('connect_timeout'))
        if fetcher.get('verify_ssl') is not None:
            self.set_option(Option.VERIFY_SSL, bool(fetcher['verify_ssl']))

        redirects = config.redirects
        if 'allowed' in redirects:
            self.redirects_allowed = bool(redirects['allowed'])
        if 'limit' in redirects:
            self.redirects_limit = redirects['limit']

        urls = config.urls
        if 'encode' in urls:
            self.encode_urls = bool(urls['encode'])
        if 'strict_paths' in urls:
            self.strict_path_handling = bool(urls['strict_paths'])
        if 'secured' in urls:
            self.secured = bool(urls['secured'])

        cookie_file = config.get('cookies', 'file')
        if cookie_file:
            self.set_cookie_file(cookie_file)
        return self

    # context

    @property
    def domain(self) -> str:
        return self._domain

    @domain.setter
    def domain(self, domain: str):
        self._domain = domain.strip()

    @property
    def subdomain(self) -> Optional[str]:
        return self._subdomain

    @subdomain.setter
    def subdomain(self, subdomain: Optional[str]):
        self._subdomain = _clarify(subdomain)

    def host(self, subdomain: Optional[str] = None) -> str:
        subdomain = _clarify(subdomain) or self._subdomain
        return f"{subdomain}.{self._domain}" if subdomain else self._domain

    @property
    def path(self) -> Optional[str]:
        """Default path prefix, stored without a leading slash."""
        return self._path

    @path.setter
    def path(self, path: Optional[str]):
        self._path = _clarify(path.strip().lstrip("/")) if path is not None else None

    @property
    def redirects_limit(self) -> Optional[int]:
        return self._redirects_limit

    @redirects_limit.setter
    def redirects_limit(self, limit: Optional[int]):
        self._redirects_limit = max(1, int(limit)) if limit else None

    def allow_redirects(self):
        self.redirects_allowed = True

    def disallow_redirects(self):
        self.redirects_allowed = False

    # download settings

    @property
    def download_path(self) -> Optional[str]:
        return self.storage.download_path

    @download_path.setter
    def download_path(self, path: Optional[str]):
        self.storage.download_path = path

    @property
    def override_file_mode(self) -> Optional[int]:
        return self.storage.file_mode

    @override_file_mode.setter
    def override_file_mode(self, mode: Optional[int]):
        self.storage.file_mode = mode

    @property
    def override_file_owner(self) -> Owner:
        return self.storage.file_owner

    @override_file_owner.setter
    def override_file_owner(self, owner: Owner):
        self.storage.file_owner = owner

    @property
    def override_file_group(self) -> Owner:
        return self.storage.file_group

    @override_file_group.setter
    def override_file_group(self, group: Owner):
        self.storage.file_group = group

    @property
    def use_remote_time(self) -> bool:
        return self.storage.use_remote_time

    @use_remote_time.setter
    def use_remote_time(self, use: bool):
        self.storage.use_remote_time = use

    # transport handle

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def has_transport(self) -> bool:
        return self._transport is not None

    def _init_transport(self) -> Transport:
        if self._transport is not None:
            self.close()
        try:
            self._transport = self.transport_factory()
        except Exception as e:
            logger.error("transport_init_failed", error=str(e))
            raise TransportInitError(str(e) or None) from e
        return self._transport

    def _get_transport(self) -> Transport:
        return self._transport if self._transport is not None else self._init_transport()

    def initialize(self):
        """Create the transport handle now instead of on the first request."""
        self._get_transport()
        return self

    def reinitialize(self):
        """Replace the transport handle, closing the current one first."""
        self._init_transport()
        return self

    def close(self):
        if self._transport is not None:
            transport, self._transport = self._transport, None
            transport.close()
        return self

    # pipelines

    @property
    def pipelines(self) -> Dict[str, Pipeline]:
        return dict(self._pipelines)

    def set_pipeline(self, pipeline: Optional[Pipeline], methods: Methods = ""):
        """Register ``pipeline`` for the given methods ("" is the default); None unsets."""
        for method in normalize_methods(methods):
            if pipeline is None:
                self._pipelines.pop(method, None)
            else:
                self._pipelines[method] = pipeline
        return self

    def add_pipe(self, pipe: Pipe, methods: Methods = ""):
        for method in normalize_methods(methods):
            pipeline = self._pipelines.get(method)
            if pipeline is None:
                pipeline = self._pipelines[method] = self.pipeline_class()
            pipeline.add(pipe)
        return self

    def add_json_pipe(self, methods: Methods = Method.WITH_PAYLOAD):
        return self.add_pipe(JSONPipe(), methods)

    def add_callback_pipe(self, callback: Callable[[Any], Any], methods: Methods = Method.WITH_PAYLOAD):
        return self.add_pipe(CallbackPipe(callback), methods)

    def clear_pipelines(self):
        self._pipelines = {}
        return self

    def get_pipeline(self, method: str = "") -> Optional[Pipeline]:
        method = method.strip().upper()
        pipeline = self._pipelines.get(method)
        return pipeline if pipeline is not None else self._pipelines.get("")

    def perform_pipeline(self, value: Any, method: str = "") -> Any:
        if not self.pipelines_active:
            return value
        pipeline = self.get_pipeline(method)
        if pipeline is None or not pipeline.active:
            return value
        return pipeline.perform(value)

    def enable_pipelines(self):
        self.pipelines_active = True
        return self

    def disable_pipelines(self):
        self.pipelines_active = False
        return self

    # URL routines

    def compose_url(self, path: Optional[str] = None, query: Optional[Mapping[str, Any]] = None,
                    subdomain: Optional[str] = None, secure: Optional[bool] = None,
                    domain: Optional[str] = None) -> str:
        """Build a URL on this crawler's host.

        Query keys are merged over the default query, the given ones win.
        """
        domain = _clarify(domain) or self._domain
        subdomain = _clarify(subdomain) or self._subdomain
        host = f"{subdomain}.{domain}" if subdomain else domain

        if path is None:
            path = self._path or ""
        else:
            path = path.strip().lstrip("/")
        if query:
            path += "?" + build_query(merge_queries(self.query, query))

        if secure is None:
            secure = self.secured
        return ("https" if secure else "http") + "://" + host + "/" + path

    def normalize_path(self, path: str, trailing_slash: bool = True) -> str:
        base = self._path
        if self.strict_path_handling and base:
            base = remove_last_segment(base)
        return resolve_path(path, base, trailing_slash)

    def normalize_url(self, url: str, query: Optional[Mapping[str, Any]] = None,
                      encode: Optional[bool] = None) -> str:
        """Make ``url`` absolute on this crawler's host.

        A URL whose host does not belong to the crawler is returned as is,
        only its scheme is replaced. Query parameters are merged in the order
        default query, ``query``, then the query literal of the URL.
        """
        if encode is None:
            encode = self.encode_urls
        url = encode_url(url) if encode else url.strip()
        parts = split_url(url)
        scheme = "https" if self.secured else "http"

        if parts.hostname and not host_matches(parts.hostname, self.host()):
            return compose_url(scheme, parts.netloc, parts.path, parts.query, parts.fragment)

        if parts.path:
            path = self.normalize_path(parts.path, has_trailing_slash(parts.path))
        else:
            path = self._path or ""

        if self.query is None and query is None:
            query_string = parts.query
        else:
            literal = parse_query(parts.query) if parts.query else None
            query_string = build_query(merge_queries(self.query, query, literal))

        netloc = build_netloc(self.host(), parts.port, parts.username, parts.password)
        return compose_url(scheme, netloc, "/" + path, query_string, parts.fragment)

    def generate_filename(self, url: str, destination: Optional[str] = None) -> str:
        return self.storage.filename_for(url, destination)

    @property
    def xhr(self) -> bool:
        return self.headers.xhr

    @xhr.setter
    def xhr(self, enabled: bool):
        self.headers.xhr = enabled

    def enable_xhr(self):
        self.xhr = True
        return self

    def disable_xhr(self):
        self.xhr = False
        return self

    # requests and responses

    def new_request(self, url: Optional[str] = None, query: Optional[Mapping[str, Any]] = None,
                    referer: Optional[str] = None) -> Request:
        """Create a request that carries copies of this crawler's options and headers."""
        request = self.request_class(self.get_options(), self.headers.copy())
        request.crawler = self
        request.default_data_type = self.default_data_type
        if url is not None:
            request.url = url
        if query is not None:
            request.query = query
        if referer is not None:
            request.referer = referer
        return request

    @property
    def response(self) -> Optional[Response]:
        """Last response of the most recent call chain."""
        return self._response

    @property
    def responses(self) -> List[Response]:
        return list(self._responses)

    def clear_responses(self):
        self._response = None
        self._responses = []

    @property
    def last_url(self) -> Optional[str]:
        return self._response.url if self._response else None

    @property
    def last_status_code(self) -> Optional[int]:
        return self._response.status_code if self._response else None

    @property
    def last_reason_phrase(self) -> Optional[str]:
        return self._response.reason_phrase if self._response else None

    @property
    def last_redirect_url(self) -> Optional[str]:
        return self._response.redirect_url if self._response else None

    # cookies

    @property
    def cookies_queue(self) -> List[Cookie]:
        return list(self._cookies_queue)

    def add_cookie(self, cookie: Cookie):
        """Queue a cookie; it reaches the jar right before the next exchange."""
        if not isinstance(cookie, Cookie):
            raise TypeError(f"Expected a Cookie, got {type(cookie).__name__}")
        self._cookies_queue.append(cookie)
        return self

    def add_cookies(self, cookies: Iterable[Cookie]):
        for cookie in cookies:
            if isinstance(cookie, Cookie):
                self.add_cookie(cookie)
        return self

    def replace_cookies(self, cookies: Iterable[Cookie]):
        self.clear_cookies()
        return self.add_cookies(cookies)

    def add_simple_cookie(self, name: str, value: str, lifetime: Optional[int] = None,
                          path: Optional[str] = None):
        """Queue a cookie for this crawler's host.

        ``lifetime`` is in seconds (None for a session cookie) and the path
        defaults to the crawler's path.
        """
        cookie = self.cookie_class(
            name=name,
            value=value,
            path=path if path is not None else "/" + (self._path or ""),
            host=self.host(),
            secure=self.secured,
        )
        cookie.set_lifetime(lifetime)
        return self.add_cookie(cookie)

    def add_simple_cookies(self, values: Mapping[str, Any], lifetime: Optional[int] = None,
                           path: Optional[str] = None):
        for name, value in values.items():
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                self.add_simple_cookie(name, str(value), lifetime, path)
        return self

    def _flush_cookies(self, transport: Transport):
        queue, self._cookies_queue = self._cookies_queue, []
        for cookie in queue:
            transport.add_cookie(cookie.serialize())

    def flush_cookies(self):
        """Move queued cookies into the jar, if the transport handle exists."""
        if self._transport is not None:
            self._flush_cookies(self._transport)
        return self

    def obtain_cookies(self) -> List[Cookie]:
        """Read the cookies back from the jar; empty without a transport handle."""
        if self._transport is None:
            return []
        result = []
        for record in self._transport.cookies():
            cookie = self.cookie_class()
            if cookie.deserialize(record):
                result.append(cookie)
            else:
                logger.warning("cookie_record_skipped", record=record)
        return result

    def clear_cookies(self):
        if self._transport is not None:
            self._transport.clear_cookies()
        self._cookies_queue = []
        return self

    def load_cookies_from_file(self, filename: Optional[str] = None):
        if self._transport is not None:
            filename = filename or self.get_option(Option.COOKIE_READ_FILE)
            if filename:
                self._transport.load_cookies(filename)
        return self

    def save_cookies_to_file(self, filename: Optional[str] = None):
        if self._transport is not None:
            filename = filename or self.get_option(Option.COOKIE_WRITE_FILE)
            if filename:
                self._transport.save_cookies(filename)
        return self

    # exchange

    def _build_response(self, result: FetchResult) -> Response:
        status_code, reason_phrase, header_lines = split_header_lines(result.header_lines)
        response = self.response_class(
            result.url,
            status_code or result.status_code,
            result.text,
            reason_phrase,
        )
        response.set_plain_headers(header_lines)
        response.redirect_url = result.redirect_url
        response.download_size = result.download_size
        response.download_speed = result.download_speed
        if result.file_time >= 0:
            response.document_time = result.file_time
        response.download_time = (
            result.timing("total")
            - result.timing("namelookup")
            - result.timing("connect")
            - result.timing("pretransfer")
            - result.timing("starttransfer")
            - result.timing("redirect")
        )
        return response

    def _execute(self, options: Options, url: str) -> Response:
        transport = self._get_transport()
        self._flush_cookies(transport)
        result = transport.execute(PreparedRequest.from_options(url, options, verbose=self.verbose))
        if result.verbose:
            self.handle_verbose(result.verbose)
        return self._build_response(result)

    def send_request(self, request: Optional[Request] = None, pipeline: Union[bool, Pipeline] = True):
        """Send ``request`` and return its content, passed through a pipeline.

        Returns None when the request hook vetoes the request. Raises
        LoopedRedirectError or OverflowRedirectError when following
        redirects goes wrong, and TransportError when no response arrives.
        """
        request = request or self.new_request()
        self.clear_responses()
        self.before_request(request)

        url = request.direct_url
        if not url:
            url = self.normalize_url(request.url, request.query)
            if not split_url(url).netloc:
                raise ValueError("Request URL is not set or empty.")

        event = RequestEvent(request, url)
        self.on_request_event(event)
        if event.is_ignored:
            logger.info("request_ignored", url=url, method=request.method)
            return None
        url = event.effective_url

        options = Options(request.get_options(), request.headers)
        if options.custom_method is None:
            options.custom_method = request.method

        try:
            if self.redirects_allowed and not request.follow_location:
                chain: List[str] = []
                count = 0

                while True:
                    response = self._execute(options, url)
                    self._responses.append(response)
                    self._response = response
                    if not response.is_redirect:
                        break

                    current = response.url or ""
                    chain.append(canonical_url(current))
                    count += 1
                    event = RedirectEvent(complete_url(response.redirect_url or "", current),
                                          response.status_code, count)
                    self.on_redirect_event(event)
                    if event.is_ignored:
                        logger.info("redirect_ignored", url=current, location=event.location)
                        break

                    url = event.location
                    target = canonical_url(url)
                    if target in chain:
                        raise LoopedRedirectError(event, chain + [target])
                    if self._redirects_limit and event.count > self._redirects_limit:
                        raise OverflowRedirectError(event, chain + [target])

                    logger.debug("redirect_followed",
                                 url=current,
                                 location=url,
                                 status_code=response.status_code,
                                 count=count)
                    # the body of the redirect response must not stay in the sink
                    if request.file is not None:
                        request.file.seek(0)
                        request.file.truncate()
            else:
                self._response = self._execute(options, url)
                self._responses = [self._response]
        finally:
            if not self.persistent:
                self.close()

        logger.info("request_sent",
                    url=self._response.url,
                    method=options.custom_method,
                    status_code=self._response.status_code,
                    redirects=len(self._responses) - 1)

        content = self._response.content
        if isinstance(pipeline, Pipeline):
            return pipeline.perform(content)
        if not pipeline:
            return content
        return self.perform_pipeline(content, request.method)

    # verbs

    def get(self, url: Optional[str] = None, query: Optional[Mapping[str, Any]] = None,
            referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_get()
        return request.send()

    def post(self, url: Optional[str] = None, data: Any = None, query: Optional[Mapping[str, Any]] = None,
             referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_post(data)
        return request.send()

    def put(self, url: Optional[str] = None, data: Any = None, query: Optional[Mapping[str, Any]] = None,
            referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_put(data)
        return request.send()

    def patch(self, url: Optional[str] = None, data: Any = None, query: Optional[Mapping[str, Any]] = None,
              referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_patch(data)
        return request.send()

    def delete(self, url: Optional[str] = None, query: Optional[Mapping[str, Any]] = None,
               referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_delete()
        return request.send()

    def head(self, url: Optional[str] = None, query: Optional[Mapping[str, Any]] = None,
             referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_head()
        return request.send()

    def options(self, url: Optional[str] = None, query: Optional[Mapping[str, Any]] = None,
                referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        request.to_options()
        return request.send()

    def custom(self, method: str, url: Optional[str] = None, data: Any = None,
               query: Optional[Mapping[str, Any]] = None, referer: Optional[str] = None):
        request = self.new_request(url, query, referer)
        method = method.strip().upper()
        if method == Method.GET:
            request.to_get()
        elif method == Method.POST:
            request.to_post(data if data is not None else {})
        elif method == Method.PUT:
            request.to_put(data if data is not None else {})
        elif method == Method.PATCH:
            request.to_patch(data if data is not None else {})
        elif method == Method.DELETE:
            request.to_delete()
        elif method == Method.HEAD:
            request.to_head()
        elif method == Method.OPTIONS:
            request.to_options()
        else:
            request.set_custom_method(method, data)
        return request.send()

    def get_json(self, url: str, query: Optional[Mapping[str, Any]] = None, referer: Optional[str] = None):
        """GET ``url`` and decode the body as JSON, None when it is not JSON."""
        content = self.new_request(url, query, referer).send(False)
        if not content:
            return None
        try:
            return json.loads(content)
        except ValueError:
            return None

    def download(self, url: str, destination: Optional[str] = None,
                 query: Optional[Mapping[str, Any]] = None, referer: Optional[str] = None) -> Optional[int]:
        """Download ``url`` into a file and return the number of bytes received.

        Downloads that did not answer 200 or delivered nothing are vetoed
        before the download hook runs; the hook may accept them again. A
        vetoed file is removed and None is returned, as it is when the request
        hook vetoes the request itself.
        """
        filename = self.generate_filename(url, destination)
        if not filename:
            raise ValueError("Unable to autodetect destination filename")

        request = self.new_request(url, query, referer)
        try:
            with self.storage.open(filename) as file:
                request.file = file
                request.send(False)
        except CrawlerError:
            self.storage.discard(filename)
            raise

        response = self._response
        if response is None:
            self.storage.discard(filename)
            return None

        event = DownloadEvent(filename, response)
        if response.status_code != 200 or not response.download_size:
            event.ignore()
        self.on_download_event(event)
        if event.is_ignored:
            self.storage.discard(filename)
            return None

        self.storage.finalize(filename, response.document_time)
        logger.info("download_completed", url=response.url, filename=filename, size=response.download_size)
        return response.download_size

    def speed_test(self, url: str, query: Optional[Mapping[str, Any]] = None, referer: Optional[str] = None,
                   connect_timeout: float = 2, execute_timeout: float = 60) -> Optional[int]:
        """Average download speed of ``url`` in bytes per second."""
        request = self.new_request(url, query, referer)
        request.set_timeouts(execute_timeout, connect_timeout)
        request.send(False)
        return self._response.download_speed if self._response else None

    def discover(self, url: str, query: Optional[Mapping[str, Any]] = None, referer: Optional[str] = None,
                 use_get_method: bool = False) -> Optional[str]:
        """Final URL after every redirect, followed by the transport.

        No redirect events are emitted. HEAD is used unless
        ``use_get_method`` is set, in which case the body is still skipped.
        """
        request = self.new_request(url, query, referer)
        request.follow_location = True
        if use_get_method:
            request.set_option(Option.NO_BODY, True)
        else:
            request.to_head()
        request.send(False)
        return self.last_url

    # hooks

    def before_request(self, request: Request):
        pass

    def handle_verbose(self, text: str):
        logger.debug("transport_verbose", output=text)

    def on_request_event(self, event: RequestEvent):
        if self._on_request is not None:
            self._on_request(event)

    def on_redirect_event(self, event: RedirectEvent):
        if self._on_redirect is not None:
            self._on_redirect(event)

    def on_download_event(self, event: DownloadEvent):
        if self._on_download is not None:
            self._on_download(event)
