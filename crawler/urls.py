"""
URL helpers shared by the crawler: encoding, query strings, path resolution.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote, quote_plus, urljoin, urlsplit, urlunsplit

# reserved delimiters and "%" stay as typed, so encoding twice is a no-op
SAFE_URL_CHARS = "!#$%&'()*+,/:;=?@[]~"


def encode_url(url: str) -> str:
    """Percent-encode characters that are not allowed in a URL."""
    return quote(url.strip(), safe=SAFE_URL_CHARS)


def _flatten_query(value: Any, prefix: str, keep_numeric_indexes: bool) -> Iterator[Tuple[str, str]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten_query(item, f"{prefix}[{key}]", keep_numeric_indexes)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            key = f"{prefix}[{index}]" if keep_numeric_indexes else f"{prefix}[]"
            yield from _flatten_query(item, key, keep_numeric_indexes)
    elif isinstance(value, bool):
        yield prefix, "1" if value else "0"
    else:
        yield prefix, str(value)


def flatten_query(query: Mapping[str, Any], keep_numeric_indexes: bool = False) -> Dict[str, str]:
    """Flatten nested mappings and lists into bracketed keys (a[b][c])."""
    result: Dict[str, str] = {}
    for name, value in query.items():
        for key, item in _flatten_query(value, str(name), keep_numeric_indexes):
            result[key] = item
    return result


def build_query(query: Mapping[str, Any], keep_numeric_indexes: bool = False) -> str:
    """Build a query string, keeping the brackets of nested keys readable.

    Lists collapse to repeated ``key[]`` pairs unless ``keep_numeric_indexes``
    is set, booleans become 1/0 and None values are skipped.
    """
    pairs = []
    for name, value in query.items():
        for key, item in _flatten_query(value, str(name), keep_numeric_indexes):
            pairs.append(quote_plus(key, safe="[]") + "=" + quote_plus(item))
    return "&".join(pairs)


def _split_key(key: str) -> Tuple[str, List[str]]:
    # "a[b][]" -> ("a", ["b", ""]); keys without well formed brackets stay flat
    start = key.find("[")
    if start <= 0 or not key.endswith("]"):
        return key, []
    segments = key[start + 1:-1].split("][")
    if any("[" in segment or "]" in segment for segment in segments):
        return key, []
    return key[:start], segments


def _assign(node: Any, segments: List[str], value: str) -> Any:
    if not segments:
        return value
    segment, rest = segments[0], segments[1:]
    if segment == "":
        if isinstance(node, dict):
            node[str(len(node))] = _assign(None, rest, value)
            return node
        if not isinstance(node, list):
            node = []
        node.append(_assign(None, rest, value))
        return node
    if isinstance(node, list):
        node = {str(index): item for index, item in enumerate(node)}
    elif not isinstance(node, dict):
        node = {}
    node[segment] = _assign(node.get(segment), rest, value)
    return node


def parse_query(query: str) -> Dict[str, Any]:
    """Parse a query string into the nested form ``build_query`` accepts.

    ``a[b]=1`` becomes ``{"a": {"b": "1"}}`` and repeated ``k[]`` pairs
    collect into a list. A repeated plain key keeps its last value.
    """
    result: Dict[str, Any] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        name, segments = _split_key(key)
        result[name] = _assign(result.get(name), segments, value)
    return result


def merge_queries(*layers: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Merge query layers left to right; later layers win on key collision."""
    result = None
    for layer in layers:
        if layer is None:
            continue
        if result is None:
            result = {}
        result.update(layer)
    return result


def has_trailing_slash(path: Optional[str]) -> bool:
    return bool(path) and path.endswith("/")


def remove_last_segment(path: str) -> str:
    """Drop the resource part of a path, leaving its directory ('a/b' -> 'a/')."""
    index = path.rfind("/")
    if index < 0:
        return ""
    return path[:index + 1]


def resolve_path(path: str, base: Optional[str] = None, trailing_slash: bool = True) -> str:
    """Resolve ``path`` against ``base`` and return it without a leading slash.

    Paths starting with a slash ignore the base. Dot segments are resolved
    and empty segments collapsed.
    """
    path = path.strip()
    if path.startswith("/") or not base:
        raw = path
    else:
        raw = base.rstrip("/") + "/" + path

    segments = []
    for segment in raw.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)

    result = "/".join(segments)
    if trailing_slash and result:
        result += "/"
    return result


def host_matches(host: str, own_host: str) -> bool:
    """Check whether ``host`` belongs to ``own_host`` (case-insensitive suffix)."""
    return host.lower().endswith(own_host.lower())


def build_netloc(host: str, port: Optional[int] = None, username: Optional[str] = None,
                 password: Optional[str] = None) -> str:
    netloc = host
    if port is not None:
        netloc += f":{port}"
    if username is not None:
        credentials = username if password is None else f"{username}:{password}"
        netloc = f"{credentials}@{netloc}"
    return netloc


def split_url(url: str):
    return urlsplit(url)


def compose_url(scheme: str, netloc: str, path: str = "", query: str = "", fragment: str = "") -> str:
    return urlunsplit((scheme, netloc, path, query, fragment))


def complete_url(location: str, base: str) -> str:
    """Make a (possibly relative) location absolute against the URL it came from."""
    location = (location or "").strip()
    if not location:
        return base
    return urljoin(base, location)


def basename(url: str) -> str:
    """Last path segment of a URL, ignoring query and fragment."""
    path = urlsplit(url).path
    return path.rstrip("/").rsplit("/", 1)[-1] if path else ""
