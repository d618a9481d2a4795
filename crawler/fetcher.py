"""
Transport layer: the exchange contract and its httpx implementation.
"""

import http.cookiejar
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog

from .cookies import Cookie
from .exceptions import RequestTimeoutError, TransportError
from .options import Method, Option, Options
from .urls import complete_url

logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = 'Mozilla/5.0 (Linux x86_64; rv:103.0) Gecko/20100101 Firefox/103.0'

# libcurl numbering, so callers can tell failures apart by code
_ERROR_CODES = (
    (httpx.UnsupportedProtocol, 1),
    (httpx.ProxyError, 5),
    (httpx.ConnectError, 7),
    (httpx.RemoteProtocolError, 8),
    (httpx.TooManyRedirects, 47),
    (httpx.DecodingError, 61),
)

TIMEOUT_ERROR_CODE = 28


def error_code_for(error: Exception) -> int:
    if isinstance(error, httpx.TimeoutException):
        return TIMEOUT_ERROR_CODE
    for error_class, code in _ERROR_CODES:
        if isinstance(error, error_class):
            return code
    return 0


def canonical_url(url: str) -> str:
    """Render ``url`` the way it goes on the wire, so equal targets compare equal."""
    try:
        return str(httpx.URL(url))
    except httpx.InvalidURL:
        return url


class PreparedRequest:
    """Everything the transport needs for one exchange."""

    def __init__(
        self,
        url: str,
        method: str = Method.GET,
        header_lines: Optional[List[str]] = None,
        body: Optional[bytes] = None,
        form: Optional[Dict[str, str]] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
        auth: Optional[Tuple[str, Optional[str]]] = None,
        proxy: Optional[str] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        follow_redirects: bool = False,
        file=None,
        verify: bool = True,
        no_body: bool = False,
        include_headers: bool = False,
        cookie_read_file: Optional[str] = None,
        cookie_write_file: Optional[str] = None,
        verbose: bool = False,
    ):
        self.url = url
        self.method = method
        self.header_lines = header_lines or []
        self.body = body
        self.form = form
        self.user_agent = user_agent
        self.referer = referer
        self.auth = auth
        self.proxy = proxy
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.follow_redirects = follow_redirects
        self.file = file
        self.verify = verify
        self.no_body = no_body
        self.include_headers = include_headers
        self.cookie_read_file = cookie_read_file
        self.cookie_write_file = cookie_write_file
        self.verbose = verbose

    @classmethod
    def from_options(cls, url: str, options: Options, verbose: bool = False) -> "PreparedRequest":
        data = options.data
        method = options.custom_method
        if method is None:
            method = Method.POST if data is not None else Method.GET

        proxy = None
        if options.proxy_host:
            proxy = options.proxy_string
            if "://" not in proxy:
                proxy = "http://" + proxy

        return cls(
            url=url,
            method=method,
            header_lines=options.headers.plain(),
            body=data if isinstance(data, bytes) else None,
            form=data if isinstance(data, dict) else None,
            user_agent=options.user_agent,
            referer=options.referer,
            auth=options.get_option(Option.AUTH),
            proxy=proxy,
            timeout=options.get_option(Option.TIMEOUT),
            connect_timeout=options.get_option(Option.CONNECT_TIMEOUT),
            follow_redirects=options.follow_location,
            file=options.file,
            verify=options.get_option(Option.VERIFY_SSL, True),
            no_body=bool(options.get_option(Option.NO_BODY, False)),
            include_headers=bool(options.get_option(Option.INCLUDE_HEADERS, False)),
            cookie_read_file=options.get_option(Option.COOKIE_READ_FILE),
            cookie_write_file=options.get_option(Option.COOKIE_WRITE_FILE),
            verbose=verbose,
        )

    def __repr__(self) -> str:
        return f"PreparedRequest(method={self.method!r}, url={self.url!r})"


class FetchResult:
    def __init__(
        self,
        url: str,
        status_code: int,
        content: bytes = b'',
        header_lines: List[str] = None,
        encoding: str = None,
        redirect_url: str = None,
        timings: Dict[str, float] = None,
        download_size: int = 0,
        download_speed: int = 0,
        file_time: int = -1,
        verbose: str = None,
    ):
        """Raw outcome of one exchange, before it becomes a Response."""
        self.url = url
        self.status_code = status_code
        self.content = content
        self.header_lines = header_lines or []
        self.encoding = encoding
        self.redirect_url = redirect_url
        self.timings = timings or {}
        self.download_size = download_size
        self.download_speed = download_speed
        self.file_time = file_time
        self.verbose = verbose
        self.timestamp = datetime.now(timezone.utc)

    @property
    def text(self) -> str:
        """Decode the response content to text using detected or fallback encoding."""
        if not self.content:
            return ""
        encoding = self.encoding or 'utf-8'
        try:
            return self.content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            return self.content.decode('utf-8', errors='replace')

    @property
    def size(self) -> int:
        """Get the size of the response content in bytes."""
        return len(self.content)

    def timing(self, name: str) -> float:
        return self.timings.get(name, 0.0)


class Transport:
    """Interface of the component that performs exchanges and owns the cookie jar.

    Jar records use the 7-field tab separated form of ``Cookie.serialize()``.
    """

    def execute(self, request: PreparedRequest) -> FetchResult:
        raise NotImplementedError

    def add_cookie(self, record: str) -> bool:
        raise NotImplementedError

    def cookies(self) -> List[str]:
        raise NotImplementedError

    def clear_cookies(self):
        raise NotImplementedError

    def load_cookies(self, filename: str):
        raise NotImplementedError

    def save_cookies(self, filename: str):
        raise NotImplementedError

    def close(self):
        pass


def to_jar_cookie(cookie: Cookie) -> http.cookiejar.Cookie:
    domain = cookie.host
    if cookie.include_subdomains and not domain.startswith('.'):
        domain = '.' + domain
    expires = int(cookie.expires_at.timestamp()) if cookie.expires_at else None
    return http.cookiejar.Cookie(
        version=0,
        name=cookie.name,
        value=cookie.value or "",
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=cookie.include_subdomains,
        domain_initial_dot=domain.startswith('.'),
        path=cookie.path or '/',
        path_specified=True,
        secure=cookie.secure,
        expires=expires,
        discard=expires is None,
        comment=None,
        comment_url=None,
        rest={"HttpOnly": None} if cookie.http_only else {},
        rfc2109=False,
    )


def from_jar_cookie(jar_cookie: http.cookiejar.Cookie) -> Cookie:
    expires_at = None
    if jar_cookie.expires:
        expires_at = datetime.fromtimestamp(jar_cookie.expires, timezone.utc)
    http_only = jar_cookie.has_nonstandard_attr("HttpOnly") or jar_cookie.has_nonstandard_attr("httponly")
    return Cookie(
        name=jar_cookie.name,
        value=jar_cookie.value,
        expires_at=expires_at,
        path=jar_cookie.path or '/',
        host=jar_cookie.domain,
        secure=bool(jar_cookie.secure),
        http_only=http_only,
        include_subdomains=jar_cookie.domain.startswith('.'),
    )


class _Trace:
    """Collects httpcore trace events into phase durations."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.marks: Dict[str, float] = {}
        self.lines: List[str] = []

    def __call__(self, event_name: str, info: Dict[str, Any]):
        self.marks[event_name] = time.perf_counter()
        if self.verbose:
            self.lines.append(f"* {event_name}")

    def _span(self, started: str, completed: str) -> float:
        start = end = None
        for name, moment in self.marks.items():
            if name.endswith(started):
                start = moment
            elif name.endswith(completed):
                end = moment
        if start is None or end is None:
            return 0.0
        return max(0.0, end - start)

    def timings(self, total: float, redirect: float) -> Dict[str, float]:
        return {
            "namelookup": 0.0,
            "connect": self._span("connect_tcp.started", "connect_tcp.complete"),
            "pretransfer": self._span("start_tls.started", "start_tls.complete"),
            "starttransfer": self._span("send_request_headers.started", "receive_response_headers.complete"),
            "redirect": redirect,
            "total": total,
        }


def _status_line(response: httpx.Response) -> str:
    return f"{response.http_version} {response.status_code} {response.reason_phrase}".rstrip()


def _header_lines(response: httpx.Response) -> List[str]:
    lines = []
    for item in [*response.history, response]:
        lines.append(_status_line(item))
        for name, value in item.headers.raw:
            lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
    return lines


def _file_time(response: httpx.Response) -> int:
    last_modified = response.headers.get("last-modified")
    if not last_modified:
        return -1
    try:
        return int(parsedate_to_datetime(last_modified).timestamp())
    except (TypeError, ValueError):
        return -1


def _redirect_time(response: httpx.Response) -> float:
    total = 0.0
    for item in response.history:
        try:
            total += item.elapsed.total_seconds()
        except RuntimeError:
            pass
    return total


class HTTPFetcher(Transport):
    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        connect_timeout: Optional[float] = None,
        verify: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the HTTP fetcher.

        ``transport`` is handed to httpx as is; tests pass an
        ``httpx.MockTransport`` here.
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.verify = verify
        self.jar = http.cookiejar.CookieJar()
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._client_key = None
        self._loaded_cookie_files = set()
        self._cookie_write_file: Optional[str] = None

    def _get_client(self, proxy: Optional[str], verify: bool) -> httpx.Client:
        key = (proxy, verify)
        if self._client is not None and self._client_key == key:
            return self._client
        if self._client is not None:
            self._client.close()
        # the jar object is shared, so cookies survive a client rebuild
        self._client = httpx.Client(
            transport=self._transport,
            proxy=proxy,
            verify=verify,
            cookies=self.jar,
            follow_redirects=False,
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout or self.timeout),
        )
        self._client_key = key
        return self._client

    def _timeout(self, request: PreparedRequest) -> httpx.Timeout:
        timeout = self.timeout if request.timeout is None else request.timeout
        connect = self.connect_timeout if request.connect_timeout is None else request.connect_timeout
        # 0 means no limit
        timeout = timeout or None
        connect = connect or timeout
        return httpx.Timeout(timeout, connect=connect)

    def _headers(self, request: PreparedRequest) -> List[Tuple[str, str]]:
        headers = []
        for line in request.header_lines:
            name, _, value = line.partition(":")
            if name.strip():
                headers.append((name.strip(), value.strip()))
        names = {name.lower() for name, _ in headers}
        if "user-agent" not in names:
            headers.append(("User-Agent", request.user_agent or self.user_agent))
        if request.referer and "referer" not in names:
            headers.append(("Referer", request.referer))
        return headers

    def execute(self, request: PreparedRequest) -> FetchResult:
        """Perform one exchange and return its raw outcome.

        Raises TransportError (or RequestTimeoutError) when no response
        could be obtained. Status codes are never turned into errors.
        """
        if request.cookie_read_file and request.cookie_read_file not in self._loaded_cookie_files:
            self._loaded_cookie_files.add(request.cookie_read_file)
            self.load_cookies(request.cookie_read_file)
        if request.cookie_write_file:
            self._cookie_write_file = request.cookie_write_file

        trace = _Trace(request.verbose)
        verbose_lines = []
        started = time.perf_counter()

        try:
            client = self._get_client(request.proxy, request.verify)
            files = None
            if request.form is not None:
                files = [(name, (None, value)) for name, value in request.form.items()]
            http_request = client.build_request(
                request.method,
                request.url,
                headers=self._headers(request),
                content=request.body,
                files=files,
                timeout=self._timeout(request),
                extensions={"trace": trace},
            )
            auth = None
            if request.auth is not None:
                username, password = request.auth
                auth = httpx.BasicAuth(username, password or "")

            if request.verbose:
                verbose_lines.append(f"> {request.method} {request.url}")
                verbose_lines.extend(f"> {name}: {value}" for name, value in http_request.headers.items())

            response = client.send(http_request, auth=auth, follow_redirects=request.follow_redirects, stream=True)
            try:
                content = b''
                size = 0
                if request.no_body or request.method == Method.HEAD:
                    pass
                elif request.file is not None:
                    for chunk in response.iter_bytes():
                        request.file.write(chunk)
                        size += len(chunk)
                else:
                    content = response.read()
                    size = len(content)
            finally:
                response.close()
        except httpx.TimeoutException as e:
            logger.warning("transport_timeout", url=request.url, error=str(e))
            raise RequestTimeoutError(request.url, str(e) or None, TIMEOUT_ERROR_CODE) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            code = error_code_for(e)
            logger.warning("transport_error", url=request.url, error=str(e), code=code)
            raise TransportError(request.url, str(e) or None, code) from e

        total = time.perf_counter() - started
        header_lines = _header_lines(response)
        if request.include_headers:
            block = "\r\n".join(header_lines[-(len(response.headers.raw) + 1):]) + "\r\n\r\n"
            content = block.encode('latin-1') + content

        redirect_url = None
        if response.has_redirect_location:
            redirect_url = complete_url(response.headers["location"], str(response.url))

        if request.verbose:
            verbose_lines.extend(trace.lines)
            verbose_lines.extend(f"< {line}" for line in header_lines)

        result = FetchResult(
            url=str(response.url),
            status_code=response.status_code,
            content=content,
            header_lines=header_lines,
            encoding=response.encoding,
            redirect_url=redirect_url,
            timings=trace.timings(total, _redirect_time(response)),
            download_size=size,
            download_speed=int(size / total) if total > 0 else 0,
            file_time=_file_time(response),
            verbose="\n".join(verbose_lines) + "\n" if request.verbose else None,
        )
        logger.debug("exchange_completed",
                     url=result.url,
                     method=request.method,
                     status_code=result.status_code,
                     size=size,
                     total_time=round(total, 4))
        return result

    # cookie jar

    def add_cookie(self, record: str) -> bool:
        cookie = Cookie.parse(record)
        if cookie is None or not cookie.name:
            logger.warning("cookie_record_skipped", record=record)
            return False
        if cookie.value is None:
            jar_cookie = to_jar_cookie(cookie)
            try:
                self.jar.clear(jar_cookie.domain, jar_cookie.path, jar_cookie.name)
            except KeyError:
                pass
            return True
        self.jar.set_cookie(to_jar_cookie(cookie))
        return True

    def cookies(self) -> List[str]:
        return [from_jar_cookie(jar_cookie).serialize() for jar_cookie in self.jar]

    def clear_cookies(self):
        self.jar.clear()

    def load_cookies(self, filename: str):
        """Merge a Netscape cookie file into the jar; a missing file is ignored."""
        file_jar = http.cookiejar.MozillaCookieJar(filename)
        try:
            file_jar.load(ignore_discard=True, ignore_expires=True)
        except FileNotFoundError:
            logger.debug("cookie_file_missing", filename=filename)
            return
        except (OSError, http.cookiejar.LoadError) as e:
            logger.warning("cookie_file_load_failed", filename=filename, error=str(e))
            return
        for jar_cookie in file_jar:
            self.jar.set_cookie(jar_cookie)
        logger.debug("cookie_file_loaded", filename=filename, count=len(file_jar))

    def save_cookies(self, filename: str):
        file_jar = http.cookiejar.MozillaCookieJar(filename)
        for jar_cookie in self.jar:
            file_jar.set_cookie(jar_cookie)
        file_jar.save(ignore_discard=True, ignore_expires=True)
        logger.debug("cookie_file_saved", filename=filename, count=len(file_jar))

    def close(self):
        if self._cookie_write_file:
            try:
                self.save_cookies(self._cookie_write_file)
            except OSError as e:
                logger.warning("cookie_file_save_failed", filename=self._cookie_write_file, error=str(e))
        if self._client is not None:
            self._client.close()
            self._client = None
            self._client_key = None


def create_fetcher(**kwargs) -> HTTPFetcher:
    """Create and initialize an HTTPFetcher instance."""
    return HTTPFetcher(**kwargs)
