"""Shared fixtures: an in-memory web site served through ``CrawlOptions.fetch``."""

from __future__ import annotations

from typing import Dict, List, Tuple, Union
from urllib.parse import urlparse

import pytest

from site_mirror.fetch import CrawlFetchResponse

Page = Tuple[int, Dict[str, str], Union[str, bytes]]


class FakeSite:
    def __init__(self, pages: Dict[str, Page]):
        self.pages = pages
        self.calls: List[Tuple[str, str]] = []

    def html(self, path: str, body: str) -> None:
        self.pages[path] = (200, {"Content-Type": "text/html; charset=utf-8"}, body)

    def css(self, path: str, body: str) -> None:
        self.pages[path] = (200, {"Content-Type": "text/css"}, body)

    def raw(self, path: str, body: bytes, ctype: str = "image/png") -> None:
        self.pages[path] = (200, {"Content-Type": ctype}, body)

    def __call__(self, crawler, url: str, referer: str) -> CrawlFetchResponse:
        self.calls.append((url, referer))
        p = urlparse(url)
        path = p.path + (f"?{p.query}" if p.query else "")
        entry = self.pages.get(path)
        if entry is None:
            return CrawlFetchResponse(status=404, headers={}, body=b"not found")
        if callable(entry):
            entry = entry()
        status, headers, body = entry
        if isinstance(body, str):
            body = body.encode("utf-8")
        return CrawlFetchResponse(status=status, headers=headers, body=body, encoding="utf-8")

    @property
    def fetched(self) -> List[str]:
        return [urlparse(u).path for u, _ in self.calls]


@pytest.fixture
def site():
    return FakeSite({})


@pytest.fixture
def no_sleep(monkeypatch):
    delays: List[float] = []
    monkeypatch.setattr("site_mirror.crawler.time.sleep", delays.append)
    return delays
