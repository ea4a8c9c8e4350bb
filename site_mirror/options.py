"""Crawl configuration, hook signatures and the records handed to hooks."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple

from .fetch import CrawlFetchResponse
from .mapping import UrlMapping
from .stores import Store

if TYPE_CHECKING:
    from .crawler import WebSiteCrawler


class ProcessUrlResult(str, enum.Enum):
    OK = "ok"
    REDIRECTED = "redirected"
    ERROR = "error"
    IGNORED = "ignored"


@dataclass(frozen=True)
class TransformUrlInfo:
    come_from_page: str
    crawler: "WebSiteCrawler"
    require_relocatable_url: bool


@dataclass(frozen=True)
class UrlProcessedInfo:
    source_url: str
    url_count: int
    local_url: str
    transformed_url: str
    requested_by_url: str
    state: ProcessUrlResult
    retry_count: int
    date: float
    elapsed: float
    cache_key: Optional[str] = None


@dataclass(frozen=True)
class CrawlFinishedInfo:
    remaining_stack: List[str] = field(default_factory=list)


class UrlSortTools:
    """Reorders the pages found on one page before they are queued.

    Example, move pagination links to the end::

        def sort(tools):
            tools.remove(lambda u: "?page=" in u).sort_asc().add_removed_after()
    """

    def __init__(self, all_urls: Sequence[str]):
        self.all_urls: List[str] = list(all_urls)
        self.removed: Optional[List[str]] = None

    def remove(self, predicate: Callable[[str], bool]) -> "UrlSortTools":
        removed, others = [], []
        for u in self.all_urls:
            (removed if predicate(u) else others).append(u)
        self.removed = removed
        self.all_urls = others
        return self

    def sort_asc(self) -> "UrlSortTools":
        self.all_urls.sort()
        return self

    def add_removed_before(self) -> "UrlSortTools":
        if self.removed is not None:
            self.all_urls = self.removed + self.all_urls
            self.removed = None
        return self

    def add_removed_after(self) -> "UrlSortTools":
        if self.removed is not None:
            self.all_urls = self.all_urls + self.removed
            self.removed = None
        return self

    def result(self) -> List[str]:
        return self.all_urls


TransformUrl = Callable[[str, TransformUrlInfo], str]
RewriteHtml = Callable[[str, str, str], str]
CustomFetch = Callable[["WebSiteCrawler", str, str], CrawlFetchResponse]


@dataclass(frozen=True)
class CrawlOptions:
    """Configuration of one crawler instance.

    Every hook is optional. Unset hooks fall back to: keep the URL, keep the
    HTML, never skip, continue, ignore, the built-in retry policy, download
    everything, no telemetry.

    Hook signatures:

    - ``transform_url(url, info) -> str``
    - ``rewrite_html_before_processing(html, local_url, source_url) -> str``
    - ``rewrite_html_before_storing(html, local_url, source_url) -> str``
    - ``can_ignore_if_already_crawled(local_url, source_url) -> bool``, only
      consulted when a store is configured too
    - ``on_page_fully_downloaded(url, state) -> bool | None``, ``False`` stops
    - ``on_resource_downloaded(url, state)``
    - ``sort_pages_to_download(tools: UrlSortTools)``
    - ``on_invalid_response_code(url, retry_count, response) -> bool``, true
      retries
    - ``can_download(local_url, is_resource) -> bool``
    - ``on_url_processed(info: UrlProcessedInfo)``
    - ``on_finished(info: CrawlFinishedInfo)``
    - ``fetch(crawler, url, referer) -> CrawlFetchResponse``
    """

    output_dir: Optional[str] = None
    store: Optional[Store] = None
    new_website_url: Optional[str] = None
    require_relocatable_url: bool = True
    pause_seconds: float = 0.0
    rewrite_urls: Tuple[str, ...] = ()
    scan_urls: Tuple[str, ...] = ()
    url_mapping: Optional[UrlMapping] = None

    transform_url: Optional[TransformUrl] = None
    rewrite_html_before_processing: Optional[RewriteHtml] = None
    rewrite_html_before_storing: Optional[RewriteHtml] = None
    can_ignore_if_already_crawled: Optional[Callable[[str, str], bool]] = None
    on_page_fully_downloaded: Optional[
        Callable[[str, ProcessUrlResult], Optional[bool]]
    ] = None
    on_resource_downloaded: Optional[Callable[[str, ProcessUrlResult], None]] = None
    sort_pages_to_download: Optional[Callable[[UrlSortTools], None]] = None
    on_invalid_response_code: Optional[
        Callable[[str, int, CrawlFetchResponse], bool]
    ] = None
    can_download: Optional[Callable[[str, bool], bool]] = None
    on_url_processed: Optional[Callable[[UrlProcessedInfo], None]] = None
    on_finished: Optional[Callable[[CrawlFinishedInfo], None]] = None
    fetch: Optional[CustomFetch] = None

    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    workers: int = 1
