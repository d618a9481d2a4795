"""
Ordered multi-map of HTTP headers with case-insensitive names.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

# a header value is either one string or an ordered sequence of strings
HeaderValue = Union[str, Sequence[str]]

XHR_HEADER = "x-requested-with"
XHR_VALUE = "XMLHttpRequest"


def _to_values(value: Optional[HeaderValue]) -> List[str]:
    """Validate a header value and return its trimmed, non-empty parts."""
    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        values = [value]
    elif isinstance(value, (list, tuple)):
        values = list(value)
    else:
        raise TypeError(f"Header value must be a string or a sequence of strings, got {type(value).__name__}")

    result = []
    for item in values:
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            raise TypeError(f"Header value items must be strings, got {type(item).__name__}")
        item = str(item).strip()
        if item:
            result.append(item)
    return result


class Headers:
    """Header names are stored lower-cased; values keep their insertion order."""

    def __init__(self, headers: Optional[Mapping[str, HeaderValue]] = None, auto_correct_names: bool = False):
        self._headers: Dict[str, List[str]] = {}
        self.auto_correct_names = auto_correct_names
        if headers:
            self.set(headers)

    def __iter__(self) -> Iterator[Tuple[str, List[str]]]:
        return iter([(name, list(values)) for name, values in self._headers.items()])

    def __len__(self) -> int:
        return len(self._headers)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __repr__(self) -> str:
        return f"Headers({self._headers!r})"

    def copy(self) -> "Headers":
        clone = Headers(auto_correct_names=self.auto_correct_names)
        clone._headers = {name: list(values) for name, values in self._headers.items()}
        return clone

    def _normalize_name(self, name: str) -> Optional[str]:
        name = name.strip().lower()
        if not name:
            return None
        if self.auto_correct_names:
            name = name.replace(" ", "-").replace("_", "-")
        return name

    def all(self) -> Dict[str, List[str]]:
        return {name: list(values) for name, values in self._headers.items()}

    def names(self) -> List[str]:
        return list(self._headers)

    def has(self, name: str) -> bool:
        name = self._normalize_name(name)
        return name is not None and name in self._headers

    def get(self, name: str) -> Optional[List[str]]:
        name = self._normalize_name(name)
        values = self._headers.get(name) if name else None
        return list(values) if values is not None else None

    def get_at(self, name: str, index: int) -> Optional[str]:
        values = self.get(name) or []
        return values[index] if -len(values) <= index < len(values) else None

    def first(self, name: str) -> Optional[str]:
        return self.get_at(name, 0)

    def last(self, name: str) -> Optional[str]:
        return self.get_at(name, -1)

    def contains(self, name: str, value: str) -> bool:
        return value.strip() in (self.get(name) or [])

    def plain(self, capitalize: bool = False) -> List[str]:
        """Render header lines ("name: value"), one per value."""
        lines = []
        for name, values in self._headers.items():
            if capitalize:
                name = "-".join(part.capitalize() for part in name.split("-"))
            for value in values:
                lines.append(f"{name}: {value}")
        return lines

    def set(self, headers: Mapping[str, HeaderValue]):
        self._headers = {}
        for name, value in headers.items():
            self.replace(name, value)

    def add(self, name: str, value: HeaderValue):
        """Append value(s) to a header, keeping the existing ones."""
        name = self._normalize_name(name)
        values = _to_values(value)
        if name and values:
            self._headers.setdefault(name, []).extend(values)

    def add_plain(self, line: str):
        """Add a raw "Name: value" header line; lines without a colon are ignored."""
        name, sep, value = line.partition(":")
        if sep:
            self.add(name, value)

    def replace(self, name: str, value: Optional[HeaderValue]):
        """Replace all values of a header; an empty value removes it."""
        name = self._normalize_name(name)
        if not name:
            return
        values = _to_values(value)
        if values:
            self._headers[name] = values
        else:
            self._headers.pop(name, None)

    def remove(self, name: str):
        name = self._normalize_name(name)
        if name:
            self._headers.pop(name, None)

    def clear(self):
        self._headers = {}

    @property
    def content_length(self) -> Optional[int]:
        value = self.last("content-length")
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    @property
    def content_type(self) -> Optional[str]:
        return self.first("content-type")

    @content_type.setter
    def content_type(self, content_type: Optional[str]):
        self.replace("content-type", content_type)

    @property
    def location(self) -> Optional[str]:
        return self.last("location")

    @property
    def received_cookies(self) -> List[str]:
        return self.get("set-cookie") or []

    @property
    def xhr(self) -> bool:
        return self.contains(XHR_HEADER, XHR_VALUE)

    @xhr.setter
    def xhr(self, enabled: bool):
        self.replace(XHR_HEADER, XHR_VALUE if enabled else None)
