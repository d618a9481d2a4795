from crawler.response import Response, split_header_lines


def test_status_line_resets_accumulated_headers():
    lines = [
        "HTTP/1.1 301 Moved Permanently",
        "Location: /next",
        "HTTP/1.1 200 OK",
        "Content-Type: text/html",
        "",
    ]

    assert split_header_lines(lines) == (200, "OK", ["Content-Type: text/html"])


def test_reason_phrase_falls_back_to_table():
    assert Response(status_code=418).reason_phrase == "I'm a teapot"
    assert Response(status_code=444).reason_phrase == "nginx: No Response"
    assert Response(status_code=200, reason_phrase="Fine").reason_phrase == "Fine"
    assert Response(status_code=299).reason_phrase is None


def test_predicates():
    assert Response(status_code=308).is_redirect
    assert not Response(status_code=304).is_redirect
    assert Response(status_code=522).is_edge_proxy_error
    assert not Response(status_code=530).is_edge_proxy_error
    assert Response(content="").is_empty
    assert Response(content=None).is_empty


def test_metrics_are_clamped():
    response = Response()
    response.download_size = -5
    response.download_time = -0.5
    response.download_speed = 100

    assert response.download_size == 0
    assert response.download_time == 0.0
    assert response.download_speed == 100


def test_plain_headers_are_parsed():
    response = Response()
    response.set_plain_headers(["Content-Length: 10", "Location: /x"])

    assert response.content_length == 10
    assert response.headers.location == "/x"
    assert response.plain_headers == ["Content-Length: 10", "Location: /x"]
