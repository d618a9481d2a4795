"""
One outbound call, bound to the Crawler that will send it.
"""

from typing import Any, Mapping, Optional, Union

from .exceptions import CrawlerError
from .headers import Headers
from .options import DataType, Method, Option, Options


class Request(Options):
    def __init__(self, options: Optional[Mapping[Option, Any]] = None, headers: Optional[Headers] = None):
        super().__init__(options, headers)
        self.url = ""
        self.method = Method.GET
        self.query: Optional[Mapping[str, Any]] = None
        self.crawler = None
        self.default_data_type: Optional[Union[DataType, str]] = None

    def __repr__(self) -> str:
        return f"Request(method={self.method!r}, url={self.url!r})"

    def _set_payload(self, data: Any, data_type: Optional[Union[DataType, str]]):
        if data is not None:
            self.set_data(data, data_type if data_type is not None else self.default_data_type)

    def to_get(self):
        self.method = Method.GET
        self.custom_method = Method.GET
        self.remove_option(Option.NO_BODY, Option.INCLUDE_HEADERS)
        self.remove_data()

    def to_post(self, data: Any = None, data_type: Optional[Union[DataType, str]] = None):
        self.method = Method.POST
        self.custom_method = Method.POST
        self.remove_option(Option.NO_BODY, Option.INCLUDE_HEADERS)
        self._set_payload(data, data_type)

    def to_put(self, data: Any = None, data_type: Optional[Union[DataType, str]] = None):
        self.method = Method.PUT
        self.custom_method = Method.PUT
        self.remove_option(Option.NO_BODY, Option.INCLUDE_HEADERS)
        self._set_payload(data, data_type)

    def to_patch(self, data: Any = None, data_type: Optional[Union[DataType, str]] = None):
        self.method = Method.PATCH
        self.custom_method = Method.PATCH
        self.remove_option(Option.NO_BODY, Option.INCLUDE_HEADERS)
        self._set_payload(data, data_type)

    def to_delete(self):
        self.method = Method.DELETE
        self.custom_method = Method.DELETE
        self.remove_option(Option.NO_BODY, Option.INCLUDE_HEADERS)
        self.remove_data()

    def to_head(self):
        self.method = Method.HEAD
        self.custom_method = Method.HEAD
        self.set_option(Option.NO_BODY, True)
        self.remove_option(Option.INCLUDE_HEADERS)
        self.remove_data()

    def to_options(self):
        self.method = Method.OPTIONS
        self.custom_method = Method.OPTIONS
        self.remove_option(Option.NO_BODY)
        self.set_option(Option.INCLUDE_HEADERS, True)
        self.remove_data()

    def set_custom_method(self, method: str, data: Any = None):
        """Switch to an arbitrary method token (e.g. PROPFIND)."""
        method = method.strip().upper()
        if not method:
            raise ValueError("Method must not be empty")
        self.method = method
        self.custom_method = method
        if data is not None:
            self.set_data(data, self.default_data_type)

    def send(self, pipeline=True):
        """Send this request through its crawler and return the pipeline output."""
        if self.crawler is None:
            raise CrawlerError("Request is not bound to a crawler.")
        return self.crawler.send_request(self, pipeline)
