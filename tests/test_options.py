import json

import pytest

from crawler.exceptions import CrawlerError
from crawler.options import DataType, Method, Option, Options, normalize_methods
from crawler.request import Request


def test_query_payload_keeps_brackets():
    options = Options()
    options.set_data({"a": {"b": 1}, "list": ["x", "y"], "flag": True, "skip": None})

    assert options.data == b"a[b]=1&list[]=x&list[]=y&flag=1"
    assert options.headers.content_type == DataType.QUERY.value


def test_plain_and_json_payloads():
    options = Options()
    options.set_data("hello")
    assert options.data == b"hello"
    assert options.headers.content_type == "text/plain"

    options.set_data({"a": [1, 2]}, DataType.JSON)
    assert json.loads(options.data) == {"a": [1, 2]}
    assert options.headers.content_type == "application/json"


def test_form_payload_is_flattened_without_content_type():
    options = Options()
    options.headers.content_type = "text/plain"
    options.set_data({"user": {"name": "bob"}, "ids": [1, 2]}, "multipart/form-data")

    assert options.data == {"user[name]": "bob", "ids[0]": "1", "ids[1]": "2"}
    assert options.headers.content_type is None


def test_unknown_type_becomes_content_type():
    options = Options()
    options.set_data("<a/>", "application/xml")

    assert options.data == b"<a/>"
    assert options.headers.content_type == "application/xml"


def test_proxy_string():
    options = Options()
    options.set_proxy("proxy.local", 3128, "user", "secret")

    assert options.proxy_string == "user:secret@proxy.local:3128"
    options.remove_proxy()
    assert options.proxy_string == ""


def test_authority():
    options = Options()
    options.set_authority("user", "pass")
    assert options.authority == "user:pass"
    options.remove_authority()
    assert options.authority is None


def test_normalize_methods():
    assert normalize_methods(" get ") == ["GET"]
    assert normalize_methods(("post", "Put")) == ["POST", "PUT"]
    with pytest.raises(TypeError):
        normalize_methods(42)
    with pytest.raises(TypeError):
        normalize_methods(["get", 1])


def test_request_transitions():
    request = Request()
    request.to_post({"a": 1})
    assert request.method == Method.POST
    assert request.data == b"a=1"

    request.to_head()
    assert request.custom_method == Method.HEAD
    assert request.get_option(Option.NO_BODY)
    assert request.data is None

    request.to_options()
    assert request.get_option(Option.INCLUDE_HEADERS)
    assert request.get_option(Option.NO_BODY) is None

    request.set_custom_method("propfind")
    assert request.method == "PROPFIND"


def test_unbound_request_cannot_be_sent():
    with pytest.raises(CrawlerError):
        Request().send()
