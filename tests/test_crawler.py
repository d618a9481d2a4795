import json
import os

import httpx
import pytest

from conftest import text
from crawler.context import Crawler
from crawler.exceptions import RequestTimeoutError, TransportError, TransportInitError
from crawler.fetcher import DEFAULT_USER_AGENT, HTTPFetcher
from crawler.options import DataType
from crawler.pipeline import CallbackPipe, Pipeline
from crawler.verbose import VerboseCrawler


def echo(request):
    return httpx.Response(200, json={
        "method": request.method,
        "path": request.url.path,
        "query": request.url.query.decode(),
        "headers": dict(request.headers),
        "body": request.content.decode("latin-1"),
    })


def test_verbs_send_their_methods(crawler, server):
    server.route("/echo", echo)
    crawler.add_json_pipe()

    assert crawler.get("echo")["method"] == "GET"
    assert crawler.post("echo", {"a": 1})["method"] == "POST"
    assert crawler.put("echo", "x")["method"] == "PUT"
    assert crawler.patch("echo", "x")["method"] == "PATCH"
    assert crawler.delete("echo")["method"] == "DELETE"
    assert json.loads(crawler.custom("propfind", "echo"))["method"] == "PROPFIND"
    assert crawler.head("echo") == ""
    assert server.requests[-1].method == "HEAD"


def test_options_verb_includes_headers(crawler, server):
    server.route("/echo", text("allowed", headers={"Allow": "GET, POST"}))

    content = crawler.options("echo")

    assert server.requests[0].method == "OPTIONS"
    assert content.startswith("HTTP/1.1 200 OK\r\n")
    assert "Allow: GET, POST" in content
    assert content.endswith("\r\n\r\nallowed")


def test_payload_encodings_reach_the_server(crawler, server):
    server.route("/echo", echo)

    sent = crawler.get_json("echo")
    assert sent["body"] == ""

    request = crawler.new_request("echo")
    request.to_post({"user": {"name": "bob"}})
    sent = json.loads(request.send())
    assert sent["body"] == "user[name]=bob"
    assert sent["headers"]["content-type"] == "application/x-www-form-urlencoded"

    request = crawler.new_request("echo")
    request.to_post({"a": [1, 2]}, DataType.JSON)
    sent = json.loads(request.send())
    assert json.loads(sent["body"]) == {"a": [1, 2]}

    request = crawler.new_request("echo")
    request.to_post({"file": "contents"}, DataType.FORM)
    sent = json.loads(request.send())
    assert sent["headers"]["content-type"].startswith("multipart/form-data; boundary=")
    assert 'name="file"' in sent["body"]


def test_default_data_type_applies_to_requests(crawler, server):
    server.route("/echo", echo)
    crawler.default_data_type = DataType.JSON

    sent = json.loads(crawler.post("echo", {"a": 1}))

    assert sent["headers"]["content-type"] == "application/json"


def test_crawler_headers_and_auth_are_sent(crawler, server):
    server.route("/echo", echo)
    crawler.enable_xhr()
    crawler.add_bearer_token("t0k3n")
    request = crawler.new_request("echo", {"page": 2}, referer="https://example.org/from")

    sent = json.loads(request.send())

    assert sent["query"] == "page=2"
    assert sent["headers"]["x-requested-with"] == "XMLHttpRequest"
    assert sent["headers"]["authorization"] == "Bearer t0k3n"
    assert sent["headers"]["referer"] == "https://example.org/from"
    assert sent["headers"]["user-agent"].startswith("Mozilla/5.0")

    request = crawler.new_request("echo")
    request.clear_headers()
    request.set_authority("user", "pass")
    sent = json.loads(request.send())
    assert sent["headers"]["authorization"] == "Basic dXNlcjpwYXNz"


def test_new_request_copies_by_value(crawler):
    crawler.set_header("X-One", "1")
    request = crawler.new_request()
    request.set_header("X-Two", "2")
    request.user_agent = "changed"

    assert not crawler.headers.has("x-two")
    assert crawler.user_agent != "changed"
    assert request.crawler is crawler


def test_request_hook_can_veto(fetcher_factory, server):
    crawler = Crawler("example.org", transport_factory=fetcher_factory, on_request=lambda event: event.ignore())

    assert crawler.get("anything") is None
    assert server.requests == []
    assert not crawler.has_transport


def test_request_hook_can_rewrite_url(fetcher_factory, server):
    server.route("/rewritten", text("ok"))

    def on_request(event):
        event.effective_url = " https://example.org/rewritten "

    crawler = Crawler("example.org", transport_factory=fetcher_factory, on_request=on_request)

    assert crawler.get("original") == "ok"


def test_direct_url_skips_normalization(crawler, server):
    server.route("/raw path", text("raw"))
    request = crawler.new_request("ignored")
    request.direct_url = "https://example.org/raw%20path"

    assert request.send() == "raw"


def test_empty_url_without_domain_is_rejected():
    with pytest.raises(ValueError):
        Crawler().get("")


def test_status_codes_are_not_errors(crawler, server):
    server.route("/down", text("bad gateway", 502))

    assert crawler.get("down") == "bad gateway"
    assert crawler.last_status_code == 502
    assert crawler.last_reason_phrase == "Bad Gateway"


def test_pipelines_are_dispatched_by_method(crawler, server):
    server.route("/data", text('{"value": 3}'))
    crawler.add_json_pipe("GET")
    crawler.add_callback_pipe(lambda data: data["value"] * 2, "get")
    crawler.add_callback_pipe(str.upper, "")

    assert crawler.get("data") == 6
    assert crawler.post("data") == '{"VALUE": 3}'
    assert crawler.get_pipeline("delete") is crawler.get_pipeline("")

    assert crawler.new_request("data").send(False) == '{"value": 3}'
    assert crawler.new_request("data").send(Pipeline(CallbackPipe(len))) == 12

    crawler.get_pipeline("GET").disable()
    assert crawler.get("data") == '{"value": 3}'

    crawler.disable_pipelines()
    assert crawler.perform_pipeline("x", "POST") == "x"
    crawler.enable_pipelines()
    assert crawler.perform_pipeline("x", "POST") == "X"

    crawler.set_pipeline(None, ["GET", ""])
    assert crawler.get_pipeline("GET") is None


def test_pipeline_methods_are_validated(crawler):
    with pytest.raises(TypeError):
        crawler.add_json_pipe(42)


def test_transport_errors_are_mapped(fetcher_factory, server):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request):
        raise httpx.ReadTimeout("too slow", request=request)

    server.route("/refuse", refuse)
    server.route("/stall", stall)
    crawler = Crawler("example.org", transport_factory=fetcher_factory)

    with pytest.raises(TransportError) as error:
        crawler.get("refuse")
    assert error.value.code == 7
    assert error.value.url == "https://example.org/refuse"

    with pytest.raises(RequestTimeoutError) as error:
        crawler.get("stall")
    assert error.value.code == 28


def test_non_persistent_mode_closes_transport(crawler, server):
    def fail(request):
        raise httpx.ConnectError("down", request=request)

    server.route("/ok", text("ok"))
    server.route("/fail", fail)
    crawler.persistent = False

    crawler.get("ok")
    assert not crawler.has_transport

    with pytest.raises(TransportError):
        crawler.get("fail")
    assert not crawler.has_transport


def test_transport_lifecycle(crawler):
    assert not crawler.has_transport
    crawler.initialize()
    first = crawler.transport
    crawler.initialize()
    assert crawler.transport is first
    crawler.reinitialize()
    assert crawler.transport is not first
    crawler.close()
    assert not crawler.has_transport


def test_transport_init_failure():
    def broken():
        raise RuntimeError("no handle")

    crawler = Crawler("example.org", transport_factory=broken)

    with pytest.raises(TransportInitError) as error:
        crawler.initialize()
    assert error.value.code == 2


def test_download(crawler, server, tmp_path):
    server.route("/files/report.pdf", text("%PDF-data", headers={"Last-Modified": "Wed, 21 Oct 2015 07:28:00 GMT"}))
    crawler.download_path = str(tmp_path)
    crawler.override_file_mode = 0o640

    size = crawler.download("files/report.pdf")

    target = tmp_path / "report.pdf"
    assert size == 9
    assert target.read_bytes() == b"%PDF-data"
    assert int(os.path.getmtime(target)) == 1445412480
    assert (os.stat(target).st_mode & 0o777) == 0o640


def test_failed_download_is_removed(crawler, server, tmp_path):
    server.route("/empty.txt", text(""))
    crawler.download_path = str(tmp_path)

    assert crawler.download("missing.txt") is None
    assert crawler.download("empty.txt") is None
    assert list(tmp_path.iterdir()) == []


def test_download_hook_can_accept_and_veto(fetcher_factory, server, tmp_path):
    server.route("/empty.txt", text(""))
    server.route("/full.txt", text("data"))
    events = []

    def on_download(event):
        events.append(event)
        if event.destination.endswith("empty.txt"):
            event.accept()
        else:
            event.ignore()

    crawler = Crawler("example.org", transport_factory=fetcher_factory, on_download=on_download)
    crawler.download_path = str(tmp_path)

    assert crawler.download("empty.txt") == 0
    assert crawler.download("full.txt") is None
    assert (tmp_path / "empty.txt").exists()
    assert not (tmp_path / "full.txt").exists()
    assert events[1].response.status_code == 200


def test_download_vetoed_by_request_hook(fetcher_factory, server, tmp_path):
    server.route("/ok.bin", text("payload"))
    server.route("/veto.bin", text("payload"))
    downloads = []

    def on_request(event):
        if event.effective_url.endswith("veto.bin"):
            event.ignore()

    def on_download(event):
        downloads.append(event)
        event.accept()

    crawler = Crawler("example.org", transport_factory=fetcher_factory,
                      on_request=on_request, on_download=on_download)
    crawler.download_path = str(tmp_path)

    assert crawler.download("veto.bin") is None
    assert crawler.download("ok.bin") == 7
    assert crawler.download("veto.bin") is None
    assert crawler.response is None
    assert not (tmp_path / "veto.bin").exists()
    assert server.paths == ["/ok.bin"]
    assert len(downloads) == 1


def test_download_needs_a_filename(crawler):
    with pytest.raises(ValueError):
        crawler.download("https://example.org/")


def test_speed_test(crawler, server):
    server.route("/blob", text("x" * 4096))

    assert crawler.speed_test("blob") >= 0
    assert crawler.response.download_size == 4096


def test_get_json_of_malformed_body(crawler, server):
    server.route("/broken", text("{not json"))

    assert crawler.get_json("broken") is None


def test_verbose_output_is_collected(fetcher_factory, server):
    server.route("/a", text("a"))
    server.route("/b", text("b"))
    crawler = VerboseCrawler("example.org", transport_factory=fetcher_factory)

    crawler.get("a")
    assert "> GET https://example.org/a" in crawler.verbose_output
    assert "< HTTP/1.1 200 OK" in crawler.verbose_output

    crawler.get("b")
    assert "https://example.org/a" not in crawler.verbose_output

    crawler.persist_verbose_output = True
    crawler.get("a")
    assert "https://example.org/a" in crawler.verbose_output
    assert "https://example.org/b" in crawler.verbose_output


def test_context_manager_closes(fetcher_factory, server):
    server.route("/a", text("a"))
    with Crawler("example.org", transport_factory=fetcher_factory) as crawler:
        crawler.get("a")
        assert crawler.has_transport
    assert not crawler.has_transport


def test_crawler_and_fetcher_share_the_default_user_agent():
    assert Crawler().user_agent == DEFAULT_USER_AGENT
    assert HTTPFetcher().user_agent == DEFAULT_USER_AGENT
