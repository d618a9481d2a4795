"""
Result of one transport exchange.
"""

from typing import Iterable, List, Optional, Tuple

from .headers import Headers

REDIRECT_CODES = frozenset((301, 302, 303, 307, 308))

REASON_PHRASES = {
    100: "Continue",
    101: "Switching Protocols",
    102: "Processing",
    103: "Early Hints",

    200: "OK",
    201: "Created",
    202: "Accepted",
    203: "Non-Authoritative Information",
    204: "No Content",
    205: "Reset Content",
    206: "Partial Content",
    207: "Multi-Status",
    208: "Already Reported",
    226: "IM Used",

    300: "Multiple Choices",
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    305: "Use Proxy",
    307: "Temporary Redirect",
    308: "Permanent Redirect",

    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    407: "Proxy Authentication Required",
    408: "Request Timeout",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    412: "Precondition Failed",
    413: "Payload Too Large",
    414: "URI Too Long",
    415: "Unsupported Media Type",
    416: "Range Not Satisfiable",
    417: "Expectation Failed",
    418: "I'm a teapot",
    421: "Misdirected Request",
    422: "Unprocessable Entity",
    423: "Locked",
    424: "Failed Dependency",
    425: "Too Early",
    426: "Upgrade Required",
    428: "Precondition Required",
    429: "Too Many Requests",
    431: "Request Header Fields Too Large",
    451: "Unavailable For Legal Reasons",
    # nginx
    444: "nginx: No Response",
    494: "nginx: Request Header Too Large",
    495: "nginx: SSL Certificate Error",
    496: "nginx: SSL Certificate Required",
    497: "nginx: HTTP Request Sent To HTTPS Port",
    499: "nginx: Client Closed Request",

    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
    505: "HTTP Version Not Supported",
    506: "Variant Also Negotiates",
    507: "Insufficient Storage",
    508: "Loop Detected",
    509: "Bandwidth Limit Exceeded",
    510: "Not Extended",
    511: "Network Authentication Required",
    # edge proxy (Cloudflare)
    520: "Cloudflare: Web Server Returned An Unknown Error",
    521: "Cloudflare: Web Server Is Down",
    522: "Cloudflare: Connection Timed Out",
    523: "Cloudflare: Origin Is Unreachable",
    524: "Cloudflare: A Timeout Occurred",
    525: "Cloudflare: SSL Handshake Failed",
    526: "Cloudflare: Invalid SSL Certificate",
    527: "Cloudflare: Railgun Error",

    529: "Qualys: Site Is Overloaded",
    530: "Pantheon: Site Is Frozen",

    598: "Network Read Timeout Error",
    599: "Network Connect Timeout Error",
}


def reason_phrase_for_code(code: int) -> Optional[str]:
    return REASON_PHRASES.get(code)


def is_redirect_code(code: int) -> bool:
    return code in REDIRECT_CODES


def is_edge_proxy_code(code: int) -> bool:
    """Codes 520-527 are emitted by the edge proxy, not by the origin server."""
    return 520 <= code <= 527


def split_header_lines(lines: Iterable[str]) -> Tuple[Optional[int], Optional[str], List[str]]:
    """Split raw header lines into (status code, reason phrase, header lines).

    A status line ("HTTP/1.1 301 Moved") discards everything accumulated
    before it, so only the headers of the last exchange survive.
    """
    status_code = None
    reason_phrase = None
    headers: List[str] = []
    for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            continue
        if line[:5].upper() == "HTTP/":
            headers = []
            parts = line.split(" ", 2)
            try:
                status_code = int(parts[1]) if len(parts) > 1 else None
            except ValueError:
                status_code = None
            reason_phrase = parts[2].strip() if len(parts) > 2 else None
            reason_phrase = reason_phrase or None
        else:
            headers.append(line)
    return status_code, reason_phrase, headers


def _clamp(value, cast):
    return max(0, cast(value)) if value is not None else None


class Response:
    def __init__(self, url: Optional[str] = None, status_code: int = 200, content: Optional[str] = None,
                 reason_phrase: Optional[str] = None):
        self.url = url
        self.status_code = status_code
        self._reason_phrase = reason_phrase
        self.content = content
        self.headers = Headers()
        self._plain_headers: List[str] = []

        self.redirect_url: Optional[str] = None
        self._download_size: Optional[int] = None
        self._download_speed: Optional[int] = None
        self._download_time: Optional[float] = None
        self._document_time: Optional[int] = None

    def __repr__(self) -> str:
        return f"Response(url={self.url!r}, status_code={self.status_code})"

    @property
    def reason_phrase(self) -> Optional[str]:
        if self._reason_phrase is None:
            return reason_phrase_for_code(self.status_code)
        return self._reason_phrase

    @reason_phrase.setter
    def reason_phrase(self, reason_phrase: Optional[str]):
        self._reason_phrase = reason_phrase

    @property
    def plain_headers(self) -> List[str]:
        return list(self._plain_headers)

    def set_plain_headers(self, lines: Iterable[str]):
        self._plain_headers = []
        self.headers.clear()
        for line in lines:
            self.add_plain_header(line)

    def add_plain_header(self, line: str):
        self.headers.add_plain(line)
        self._plain_headers.append(line)

    def clear_headers(self):
        self.headers.clear()
        self._plain_headers = []

    @property
    def is_empty(self) -> bool:
        return not self.content

    @property
    def is_redirect(self) -> bool:
        return is_redirect_code(self.status_code)

    @property
    def is_edge_proxy_error(self) -> bool:
        return is_edge_proxy_code(self.status_code)

    @property
    def content_length(self) -> Optional[int]:
        return self.headers.content_length

    @property
    def download_size(self) -> Optional[int]:
        return self._download_size

    @download_size.setter
    def download_size(self, size: Optional[int]):
        self._download_size = _clamp(size, int)

    @property
    def download_speed(self) -> Optional[int]:
        """Average download speed in bytes per second."""
        return self._download_speed

    @download_speed.setter
    def download_speed(self, speed: Optional[int]):
        self._download_speed = _clamp(speed, int)

    @property
    def download_time(self) -> Optional[float]:
        """Seconds spent transferring the body alone."""
        return self._download_time

    @download_time.setter
    def download_time(self, seconds: Optional[float]):
        self._download_time = _clamp(seconds, float)

    @property
    def document_time(self) -> Optional[int]:
        """Remote modification time of the document (unix timestamp)."""
        return self._document_time

    @document_time.setter
    def document_time(self, timestamp: Optional[int]):
        self._document_time = _clamp(timestamp, int)
