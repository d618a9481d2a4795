"""
Cookie value object and its portable (Netscape cookie-jar) record form.
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Optional
from urllib.parse import quote

HTTP_ONLY_PREFIX = "#HttpOnly_"

# characters that would break the "name=value" pair of a header line
_RESERVED_NAME_CHARS = {
    "=": "%3D", ",": "%2C", ";": "%3B", " ": "%20", "\t": "%09",
    "\r": "%0D", "\n": "%0A", "\v": "%0B", "\f": "%0C",
}

# deletion lines expire one year (and a second) in the past
_DELETED_EXPIRY = timedelta(seconds=31536001)


def _flag(value: bool) -> str:
    return "TRUE" if value else "FALSE"


class Cookie:
    """One HTTP cookie.

    ``value`` is None for a deleted cookie. In the record form it becomes an
    empty field, and an empty field reads back as None.
    """

    def __init__(
        self,
        name: str = "",
        value: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        path: str = "/",
        host: str = "",
        secure: bool = False,
        http_only: bool = False,
        include_subdomains: bool = False,
    ):
        self.name = name
        self.value = value
        self.expires_at = expires_at
        self.path = path
        self.host = host
        self.secure = secure
        self.http_only = http_only
        self.include_subdomains = include_subdomains

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, name: str):
        self._name = name.strip()

    @property
    def value(self) -> Optional[str]:
        return self._value

    @value.setter
    def value(self, value: Optional[str]):
        value = value.strip() if value is not None else None
        self._value = value or None

    @property
    def host(self) -> str:
        return self._host

    @host.setter
    def host(self, host: str):
        self._host = host.strip()

    @property
    def path(self) -> str:
        return self._path

    @path.setter
    def path(self, path: str):
        self._path = path.strip()

    @staticmethod
    def expires_at_from_lifetime(lifetime: int) -> datetime:
        """Expiry moment ``lifetime`` seconds from now (0 is now, negative is past)."""
        return datetime.now(timezone.utc) + timedelta(seconds=lifetime)

    def set_lifetime(self, lifetime: Optional[int]):
        self.expires_at = self.expires_at_from_lifetime(lifetime) if lifetime is not None else None

    @property
    def is_session(self) -> bool:
        return self.expires_at is None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at.timestamp() <= now.timestamp()

    def serialize(self) -> str:
        """Render the 7-field tab separated record used by cookie jars."""
        expires = int(self.expires_at.timestamp()) if self.expires_at else 0
        return "\t".join([
            (HTTP_ONLY_PREFIX if self.http_only else "") + self.host,
            _flag(self.include_subdomains),
            self.path,
            _flag(self.secure),
            str(expires),
            self.name,
            self.value or "",
        ])

    def deserialize(self, record: str) -> bool:
        """Load this cookie from a jar record.

        Returns False and leaves the cookie untouched when the record does not
        have exactly 7 fields or carries a non-numeric expiry.
        """
        fields = record.rstrip("\r\n").split("\t")
        if len(fields) != 7:
            return False
        try:
            expires = int(fields[4])
            expires_at = datetime.fromtimestamp(expires, timezone.utc) if expires else None
        except (ValueError, OverflowError, OSError):
            return False

        host = fields[0]
        if host.startswith(HTTP_ONLY_PREFIX):
            self.http_only = True
            host = host[len(HTTP_ONLY_PREFIX):]
        else:
            self.http_only = False
        self.host = host

        self.include_subdomains = fields[1] == "TRUE"
        self.path = fields[2]
        self.secure = fields[3] == "TRUE"
        self.expires_at = expires_at
        self.name = fields[5]
        self.value = fields[6]
        return True

    @classmethod
    def parse(cls, record: str) -> Optional["Cookie"]:
        cookie = cls()
        return cookie if cookie.deserialize(record) else None

    def to_header_line(self) -> str:
        """Render a Set-Cookie style line for handing the cookie to a client.

        A deleted cookie (value None) is rendered as ``deleted`` with an
        expiry in the past, so the receiving side drops it.
        """
        name = "".join(_RESERVED_NAME_CHARS.get(char, char) for char in self.name)
        parts = []
        if self.value is None:
            expired = datetime.now(timezone.utc) - _DELETED_EXPIRY
            parts.append(f"{name}=deleted")
            parts.append("expires=" + format_datetime(expired, usegmt=True))
        else:
            parts.append(f"{name}=" + quote(self.value, safe=""))
            if self.expires_at:
                parts.append("expires=" + format_datetime(self.expires_at.astimezone(timezone.utc), usegmt=True))

        if self.path:
            parts.append("path=" + self.path)
        if self.host:
            parts.append("domain=" + self.host)
        if self.secure:
            parts.append("secure")
        if self.http_only:
            parts.append("httponly")
        return "; ".join(parts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Cookie):
            return NotImplemented
        return self.serialize() == other.serialize() and self.value == other.value

    def __repr__(self) -> str:
        return f"Cookie(name={self.name!r}, value={self.value!r}, host={self.host!r}, path={self.path!r})"
