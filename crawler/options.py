"""
Transport directives built up by the caller before a request is sent.
"""

import json
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .headers import HeaderValue, Headers
from .urls import build_query, flatten_query


class Method:
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    CONNECT = "CONNECT"
    TRACE = "TRACE"

    WITH_PAYLOAD = (GET, POST, PUT, DELETE, PATCH)


class DataType(str, Enum):
    PLAIN = "text/plain"
    FORM = "multipart/form-data"
    JSON = "application/json"
    QUERY = "application/x-www-form-urlencoded"


class Option(str, Enum):
    CUSTOM_METHOD = "custom_method"
    DATA = "data"
    URL = "url"
    REFERER = "referer"
    USER_AGENT = "user_agent"
    FILE = "file"
    AUTH = "auth"
    PROXY = "proxy"
    PROXY_PORT = "proxy_port"
    PROXY_AUTH = "proxy_auth"
    COOKIE_READ_FILE = "cookie_read_file"
    COOKIE_WRITE_FILE = "cookie_write_file"
    FOLLOW_LOCATION = "follow_location"
    NO_BODY = "no_body"
    INCLUDE_HEADERS = "include_headers"
    TIMEOUT = "timeout"
    CONNECT_TIMEOUT = "connect_timeout"
    VERIFY_SSL = "verify_ssl"


def _can_be_string(value: Any) -> bool:
    return isinstance(value, (str, bytes, int, float)) and not isinstance(value, bool)


class Options:
    """A bag of options plus the headers that go with them."""

    def __init__(self, options: Optional[Mapping[Option, Any]] = None, headers: Optional[Headers] = None):
        self._options: Dict[Option, Any] = dict(options or {})
        self.headers = headers if headers is not None else Headers()

    def get_options(self) -> Dict[Option, Any]:
        return dict(self._options)

    def set_options(self, options: Mapping[Option, Any]):
        self._options = dict(options)

    def copy_options(self) -> "Options":
        return Options(self._options, self.headers.copy())

    def get_option(self, option: Option, default: Any = None) -> Any:
        return self._options.get(option, default)

    def set_option(self, option: Option, value: Any):
        self._options[option] = value

    def remove_option(self, *options: Option):
        for option in options:
            self._options.pop(option, None)

    def clear_options(self):
        self._options = {}

    # headers

    def add_header(self, name: str, value: HeaderValue):
        self.headers.add(name, value)

    def set_header(self, name: str, value: Optional[HeaderValue]):
        self.headers.replace(name, value)

    def clear_headers(self):
        self.headers.clear()

    def add_bearer_token(self, token: str):
        self.headers.add("Authorization", "Bearer " + token)

    @property
    def custom_method(self) -> Optional[str]:
        return self.get_option(Option.CUSTOM_METHOD)

    @custom_method.setter
    def custom_method(self, method: Optional[str]):
        if method is None:
            self.remove_option(Option.CUSTOM_METHOD)
        else:
            self.set_option(Option.CUSTOM_METHOD, method.strip().upper())

    # payload

    @property
    def data(self) -> Any:
        return self.get_option(Option.DATA)

    def _set_data_explicitly(self, data: Any, content_type: Optional[str] = None):
        if content_type is not None:
            self.headers.content_type = content_type
        self.set_option(Option.DATA, data)

    def set_plain_data(self, data: Union[str, bytes]):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._set_data_explicitly(data, DataType.PLAIN.value)

    def set_query_data(self, data: Mapping[str, Any], keep_numeric_indexes: bool = False):
        body = build_query(data, keep_numeric_indexes)
        self._set_data_explicitly(body.encode("utf-8"), DataType.QUERY.value)

    def set_form_data(self, data: Mapping[str, Any]):
        # the multipart boundary is chosen by the transport, so no content type here
        self.headers.remove("content-type")
        self._set_data_explicitly(flatten_query(data, keep_numeric_indexes=True))

    def set_json_data(self, data: Any):
        self._set_data_explicitly(json.dumps(data).encode("utf-8"), DataType.JSON.value)

    def set_data(self, data: Any, data_type: Optional[Union[DataType, str]] = None):
        """Set the payload, encoding it according to ``data_type``.

        Without a type, mappings are sent as a urlencoded query and scalars
        as plain text. An unknown type string is used as the content type of
        a scalar payload.
        """
        if data_type is not None and not isinstance(data_type, DataType):
            try:
                data_type = DataType(data_type.strip())
            except ValueError:
                if _can_be_string(data):
                    payload = data if isinstance(data, bytes) else str(data).encode("utf-8")
                    self._set_data_explicitly(payload, data_type)
                return

        if data_type is DataType.PLAIN:
            if _can_be_string(data):
                self.set_plain_data(data if isinstance(data, bytes) else str(data))
        elif data_type is DataType.FORM:
            if isinstance(data, Mapping):
                self.set_form_data(data)
        elif data_type is DataType.JSON:
            self.set_json_data(data)
        elif data_type is DataType.QUERY:
            if isinstance(data, Mapping):
                self.set_query_data(data)
        elif isinstance(data, Mapping):
            self.set_query_data(data)
        elif _can_be_string(data):
            self.set_plain_data(data if isinstance(data, bytes) else str(data))

    def remove_data(self):
        self.remove_option(Option.DATA)

    # misc directives

    @property
    def referer(self) -> Optional[str]:
        return self.get_option(Option.REFERER)

    @referer.setter
    def referer(self, referer: Optional[str]):
        if referer is None:
            self.remove_option(Option.REFERER)
        else:
            self.set_option(Option.REFERER, referer.strip())

    @property
    def user_agent(self) -> Optional[str]:
        return self.get_option(Option.USER_AGENT)

    @user_agent.setter
    def user_agent(self, user_agent: str):
        self.set_option(Option.USER_AGENT, user_agent.strip())

    @property
    def file(self):
        """Binary file object the response body is written to (download mode)."""
        return self.get_option(Option.FILE)

    @file.setter
    def file(self, file):
        if file is None:
            self.remove_option(Option.FILE)
        elif hasattr(file, "write"):
            self.set_option(Option.FILE, file)

    @property
    def direct_url(self) -> Optional[str]:
        return self.get_option(Option.URL)

    @direct_url.setter
    def direct_url(self, url: Optional[str]):
        if url is None:
            self.remove_option(Option.URL)
        else:
            self.set_option(Option.URL, url)

    @property
    def authority(self) -> Optional[str]:
        auth = self.get_option(Option.AUTH)
        if auth is None:
            return None
        username, password = auth
        return username if password is None else f"{username}:{password}"

    def set_authority(self, username: str, password: Optional[str] = None):
        self.set_option(Option.AUTH, (username, password))

    def remove_authority(self):
        self.remove_option(Option.AUTH)

    @property
    def follow_location(self) -> bool:
        return bool(self.get_option(Option.FOLLOW_LOCATION, False))

    @follow_location.setter
    def follow_location(self, follow: bool):
        self.set_option(Option.FOLLOW_LOCATION, follow)

    def set_timeouts(self, timeout: Optional[float] = None, connect_timeout: Optional[float] = None):
        """Set the total and connect timeouts in seconds; 0 waits indefinitely."""
        if timeout is not None:
            self.set_option(Option.TIMEOUT, timeout)
        if connect_timeout is not None:
            self.set_option(Option.CONNECT_TIMEOUT, connect_timeout)

    # cookie files

    def set_cookie_read_file(self, filename: str):
        self.set_option(Option.COOKIE_READ_FILE, filename)

    def set_cookie_write_file(self, filename: str):
        self.set_option(Option.COOKIE_WRITE_FILE, filename)

    def set_cookie_file(self, filename: str):
        self.set_cookie_read_file(filename)
        self.set_cookie_write_file(filename)

    # proxy

    def set_proxy(self, proxy: str, port: Optional[int] = None, username: Optional[str] = None,
                  password: Optional[str] = None):
        """Tunnel requests through an HTTP proxy."""
        self.set_option(Option.PROXY, proxy.strip())
        if port is not None:
            self.set_option(Option.PROXY_PORT, port)
        if username is not None and password is not None:
            self.set_option(Option.PROXY_AUTH, f"{username}:{password}")

    @property
    def proxy_host(self) -> Optional[str]:
        return self.get_option(Option.PROXY)

    @property
    def proxy_port(self) -> Optional[int]:
        return self.get_option(Option.PROXY_PORT)

    @property
    def proxy_authority(self) -> Optional[str]:
        return self.get_option(Option.PROXY_AUTH)

    @property
    def proxy_string(self) -> str:
        result = self.proxy_host or ""
        if self.proxy_port:
            result += f":{self.proxy_port}"
        if self.proxy_authority:
            result = f"{self.proxy_authority}@{result}"
        return result

    def remove_proxy(self):
        self.remove_option(Option.PROXY, Option.PROXY_PORT, Option.PROXY_AUTH)


def normalize_methods(methods: Union[str, Iterable[str]]) -> Iterable[str]:
    """Validate a "one method or a sequence of methods" argument."""
    if isinstance(methods, str):
        return [methods.strip().upper()]
    if isinstance(methods, (list, tuple, set, frozenset)):
        result = []
        for method in methods:
            if not isinstance(method, str):
                raise TypeError(f"Method must be a string, got {type(method).__name__}")
            result.append(method.strip().upper())
        return result
    raise TypeError(f"Methods must be a string or a sequence of strings, got {type(methods).__name__}")
