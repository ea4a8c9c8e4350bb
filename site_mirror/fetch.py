"""Fetcher contract and the default requests-based transport."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from urllib3.util.retry import Retry

LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; site-mirror/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.7",
}


@dataclass
class CrawlFetchResponse:
    """A fully buffered HTTP response."""

    status: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    encoding: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def content_type(self) -> str:
        return (self.headers.get("Content-Type") or "").lower()

    def text(self) -> str:
        return self.body.decode(self.encoding or "utf-8", errors="replace")

    def content(self) -> bytes:
        return self.body


@dataclass
class FetchFailure:
    """Returned instead of a response when the transport raised."""

    url: str
    error: BaseException

    def __str__(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


FetchOutcome = Union[CrawlFetchResponse, FetchFailure]


def build_session(
    headers: Optional[Dict[str, str]] = None, connect_retries: int = 2
) -> requests.Session:
    s = requests.Session()
    # Status retries are handled by the crawler, only retry broken connections.
    retry = Retry(
        total=connect_retries,
        connect=connect_retries,
        read=0,
        status=0,
        redirect=0,
        backoff_factor=0.5,
        allowed_methods={"GET", "HEAD"},
        raise_on_status=False,
        raise_on_redirect=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=32, pool_maxsize=32)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    s.headers.update(DEFAULT_HEADERS if headers is None else headers)
    return s


class RequestsFetcher:
    """Plain GET with redirects surfaced as 3xx responses."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 15.0,
        verify_ssl: bool = True,
        extra_headers: Optional[Mapping[str, str]] = None,
    ):
        self.session = session or build_session()
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        if extra_headers:
            self.session.headers.update(extra_headers)

    def fetch(self, url: str, referer: str) -> CrawlFetchResponse:
        headers = {"Accept-Encoding": "identity"}
        if referer:
            headers["Referer"] = referer
        r = self.session.get(
            url,
            headers=headers,
            timeout=self.timeout,
            allow_redirects=False,
            verify=self.verify_ssl,
        )
        body = r.content
        encoding = r.encoding
        ctype = (r.headers.get("Content-Type") or "").lower()
        # requests reports ISO-8859-1 for any text/* without a charset
        if "text/" in ctype and "charset=" not in ctype:
            encoding = r.apparent_encoding or "utf-8"
        return CrawlFetchResponse(
            status=r.status_code,
            headers=CaseInsensitiveDict(r.headers),
            body=body,
            encoding=encoding,
        )

    def close(self) -> None:
        self.session.close()


def parse_header_lines(lines) -> Dict[str, str]:
    """Turn ``["Name: value", ...]`` into a header dict, skipping bad lines."""
    out: Dict[str, str] = {}
    for h in lines or []:
        if ":" not in h:
            LOGGER.warning("invalid header (no colon): %s", h)
            continue
        k, v = h.split(":", 1)
        out[k.strip()] = v.strip()
    return out
