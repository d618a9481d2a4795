from datetime import datetime, timedelta, timezone

from crawler.cookies import Cookie


def test_parse_jar_record():
    cookie = Cookie.parse("example.org\tFALSE\t/\tFALSE\t0\tnew\tcookie")

    assert cookie is not None
    assert cookie.host == "example.org"
    assert cookie.path == "/"
    assert cookie.name == "new"
    assert cookie.value == "cookie"
    assert cookie.is_session
    assert not cookie.secure
    assert not cookie.http_only
    assert not cookie.include_subdomains


def test_serialize_matches_jar_record():
    record = "#HttpOnly_.example.org\tTRUE\t/app\tTRUE\t1700000000\tsid\tabc"
    cookie = Cookie.parse(record)

    assert cookie.http_only
    assert cookie.host == ".example.org"
    assert cookie.include_subdomains
    assert cookie.secure
    assert cookie.expires_at == datetime.fromtimestamp(1700000000, timezone.utc)
    assert cookie.serialize() == record


def test_deserialize_rejects_malformed_records():
    cookie = Cookie(name="keep", value="me", host="example.org")

    assert not cookie.deserialize("example.org\tFALSE\t/\tFALSE\t0\tonly-six")
    assert not cookie.deserialize("example.org\tFALSE\t/\tFALSE\tsoon\tname\tvalue")
    assert not cookie.deserialize("")
    assert cookie.name == "keep"
    assert cookie.value == "me"
    assert Cookie.parse("garbage") is None


def test_empty_value_is_deleted_cookie():
    cookie = Cookie(name=" gone ", value="   ", host=" example.org ")

    assert cookie.name == "gone"
    assert cookie.host == "example.org"
    assert cookie.value is None
    assert cookie.serialize().endswith("\tgone\t")
    assert Cookie.parse(cookie.serialize()).value is None


def test_header_line():
    expires = datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    cookie = Cookie(name="a=b", value="hello world", expires_at=expires, path="/",
                    host="example.org", secure=True, http_only=True)

    assert cookie.to_header_line() == (
        "a%3Db=hello%20world; expires=Wed, 02 Jan 2030 03:04:05 GMT; "
        "path=/; domain=example.org; secure; httponly"
    )


def test_header_line_of_deleted_cookie_expires_in_the_past():
    line = Cookie(name="gone", host="example.org").to_header_line()

    assert line.startswith("gone=deleted; expires=")
    assert str(datetime.now(timezone.utc).year - 1) in line


def test_lifetime():
    cookie = Cookie(name="a", value="1")
    before = datetime.now(timezone.utc)
    cookie.set_lifetime(60)

    assert cookie.expires_at - before >= timedelta(seconds=59)
    assert not cookie.is_expired()

    cookie.set_lifetime(-10)
    assert cookie.is_expired()

    cookie.set_lifetime(None)
    assert cookie.is_session
