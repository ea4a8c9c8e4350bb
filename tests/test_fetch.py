"""Tests for site_mirror.fetch."""

import logging

import requests
from requests.structures import CaseInsensitiveDict

from site_mirror.fetch import (
    DEFAULT_HEADERS,
    CrawlFetchResponse,
    FetchFailure,
    RequestsFetcher,
    build_session,
    parse_header_lines,
)


class FakeResponse:
    def __init__(self, status=200, headers=None, content=b"", encoding=None):
        self.status_code = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content
        self.encoding = encoding
        self.apparent_encoding = "ascii"


class FakeSession:
    def __init__(self, response):
        self.headers = {}
        self.response = response
        self.requests = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        return self.response

    def close(self):
        self.closed = True


def test_fetch_does_not_follow_redirects():
    session = FakeSession(FakeResponse(302, {"location": "/next"}))
    fetcher = RequestsFetcher(session, timeout=3.0, verify_ssl=False)
    res = fetcher.fetch("https://site.test/old", "https://site.test/")

    url, kwargs = session.requests[0]
    assert url == "https://site.test/old"
    assert kwargs["allow_redirects"] is False
    assert kwargs["timeout"] == 3.0
    assert kwargs["verify"] is False
    assert kwargs["headers"] == {
        "Accept-Encoding": "identity",
        "Referer": "https://site.test/",
    }
    assert res.status == 302
    assert res.headers["Location"] == "/next"


def test_fetch_without_referer():
    session = FakeSession(FakeResponse(200, {"Content-Type": "image/png"}, b"PNG"))
    res = RequestsFetcher(session).fetch("https://site.test/a.png", "")
    assert "Referer" not in session.requests[0][1]["headers"]
    assert res.content() == b"PNG"
    assert res.encoding is None


def test_text_falls_back_to_detected_encoding():
    session = FakeSession(FakeResponse(200, {"Content-Type": "text/html"}, b"<p>hi</p>"))
    res = RequestsFetcher(session).fetch("https://site.test/", "")
    assert res.encoding == "ascii"
    assert res.text() == "<p>hi</p>"


def real_response(status, headers, content):
    r = requests.Response()
    r.status_code = status
    r.headers = CaseInsensitiveDict(headers)
    r._content = content
    r.encoding = requests.utils.get_encoding_from_headers(r.headers)
    return r


def test_text_without_charset_is_not_read_as_latin1():
    body = "<p>café crème brûlée, déjà vu à la française</p>".encode("utf-8")
    session = FakeSession(real_response(200, {"Content-Type": "text/html"}, body))
    res = RequestsFetcher(session).fetch("https://site.test/", "")
    assert res.text() == "<p>café crème brûlée, déjà vu à la française</p>"


def test_declared_charset_wins():
    body = "<p>café</p>".encode("latin-1")
    session = FakeSession(
        real_response(200, {"Content-Type": "text/html; charset=ISO-8859-1"}, body)
    )
    res = RequestsFetcher(session).fetch("https://site.test/", "")
    assert res.encoding.lower() == "iso-8859-1"
    assert res.text() == "<p>café</p>"


def test_extra_headers_and_close():
    session = FakeSession(FakeResponse())
    fetcher = RequestsFetcher(session, extra_headers={"X-Token": "abc"})
    assert session.headers["X-Token"] == "abc"
    fetcher.close()
    assert session.closed


def test_build_session_defaults():
    s = build_session()
    assert s.headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]
    adapter = s.get_adapter("https://site.test/")
    assert adapter.max_retries.status == 0
    assert adapter.max_retries.redirect == 0


def test_response_headers_case_insensitive():
    res = CrawlFetchResponse(200, {"content-type": "Text/CSS"}, b"")
    assert res.headers["Content-Type"] == "Text/CSS"
    assert res.content_type == "text/css"
    assert res.text() == ""


def test_fetch_failure_str():
    failure = FetchFailure("https://site.test/", ConnectionError("refused"))
    assert str(failure) == "ConnectionError: refused"


def test_parse_header_lines(caplog):
    with caplog.at_level(logging.WARNING, logger="site_mirror.fetch"):
        out = parse_header_lines(["X-A: 1", "bogus", "Cookie: a=b: c"])
    assert out == {"X-A": "1", "Cookie": "a=b: c"}
    assert "invalid header" in caplog.text
