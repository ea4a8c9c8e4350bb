"""Grouped breadth-first crawler producing a relocatable copy of a web site."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from threading import Lock
from typing import Deque, List, Optional, Set

from .fetch import CrawlFetchResponse, FetchFailure, FetchOutcome, RequestsFetcher
from .mapping import UrlMapping, UrlMappingResult
from .options import (
    CrawlFinishedInfo,
    CrawlOptions,
    ProcessUrlResult,
    TransformUrlInfo,
    UrlProcessedInfo,
    UrlSortTools,
)
from .rewrite import rewrite_css, rewrite_html
from .stores import DirectoryStore, Store
from .urls import CrawlScope, origin_of

LOGGER = logging.getLogger(__name__)


@dataclass
class CrawlUrlGroup:
    """A page and the URLs discovered while processing it."""

    url: str
    pending: List[str] = field(default_factory=list)


class WebSiteCrawler:
    """Mirror ``source_website`` through the configured store.

    ``options.new_website_url`` names the site being produced when it differs
    from the one being read; URLs of the source site are then rewritten onto
    it. Each instance owns its queue and visited set, several crawlers may
    run side by side.

    ``fetcher`` is the default transport, used when no ``options.fetch`` is
    set. It is closed by ``close()``.
    """

    def __init__(
        self,
        source_website: str,
        options: Optional[CrawlOptions] = None,
        fetcher: Optional[RequestsFetcher] = None,
    ):
        options = options or CrawlOptions()
        target = origin_of(options.new_website_url or source_website)
        source = origin_of(source_website)

        rewrite_urls = list(options.rewrite_urls)
        if source != target and source not in rewrite_urls:
            rewrite_urls.append(source)

        mapping = options.url_mapping
        if mapping is None:
            mapping = UrlMapping(source_website)
        else:
            for o in mapping.known_origins():
                if o not in rewrite_urls:
                    rewrite_urls.append(o)

        self.options = dataclasses.replace(
            options, rewrite_urls=tuple(rewrite_urls), url_mapping=mapping
        )
        self.scope = CrawlScope(
            target, rewrite_urls, relocatable=options.require_relocatable_url
        )
        self.origin = self.scope.origin

        self.store: Optional[Store] = options.store
        if self.store is None and options.output_dir:
            self.store = DirectoryStore(options.output_dir)

        if fetcher is None and not options.fetch:
            fetcher = RequestsFetcher()
        self._fetcher = fetcher
        self._lock = Lock()
        self._visited: Set[str] = set()
        self._queue: Deque[CrawlUrlGroup] = deque()
        self._current = CrawlUrlGroup(url=self.origin + "/")
        self._is_started = False
        self.url_count = 0

    # -------------------- session --------------------

    def close(self) -> None:
        if self._fetcher is not None:
            self._fetcher.close()

    def start(self, entry_point: Optional[str] = None) -> CrawlFinishedInfo:
        if self._is_started:
            raise RuntimeError("crawl already running")
        self._is_started = True
        try:
            self._visited = set()
            self._queue = deque()
            self.url_count = 0

            seed = self.scope.normalize(entry_point or "/", self.origin + "/")
            if seed is None:
                raise ValueError(f"entry point outside of {self.origin}: {entry_point}")
            self._visited.add(seed)
            group = CrawlUrlGroup(url=seed)
            self._queue.append(group)
            self._current = group
            for u in self.options.scan_urls:
                self.push_url(u, seed)

            LOGGER.info("crawl started at %s", seed)
            while self._queue:
                group = self._queue.popleft()
                if not self._process_group(group):
                    LOGGER.info("crawl stopped by caller")
                    break

            info = CrawlFinishedInfo(remaining_stack=[g.url for g in self._queue])
            LOGGER.info(
                "crawl finished: %d urls processed, %d left",
                self.url_count,
                len(info.remaining_stack),
            )
        finally:
            self._is_started = False

        if self.options.on_finished:
            self.options.on_finished(info)
        return info

    def _process_group(self, group: CrawlUrlGroup) -> bool:
        LOGGER.debug("processing group %s", group.url)
        self._current = group
        state = self.process_url(group.url)

        while group.pending:
            with self._lock:
                batch, group.pending = group.pending, []
            pages = [u for u in batch if not self.is_resource(u)]
            resources = [u for u in batch if self.is_resource(u)]

            if len(pages) > 1 and self.options.sort_pages_to_download:
                tools = UrlSortTools(pages)
                self.options.sort_pages_to_download(tools)
                pages = tools.result()
            for u in pages:
                LOGGER.debug("queue page %s", u)
                self._queue.append(CrawlUrlGroup(url=u))

            for u, res_state in self._process_resources(resources):
                if self.options.on_resource_downloaded:
                    self.options.on_resource_downloaded(u, res_state)

        if self.options.on_page_fully_downloaded:
            if self.options.on_page_fully_downloaded(group.url, state) is False:
                return False
        return True

    def _process_resources(self, urls: List[str]):
        if not urls:
            return
        LOGGER.debug("processing %d resources", len(urls))
        if self.options.workers <= 1 or len(urls) == 1:
            for u in urls:
                yield u, self.process_url(u)
            return
        with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
            future_map = {pool.submit(self.process_url, u): u for u in urls}
            for fut in as_completed(future_map):
                yield future_map[fut], fut.result()

    # -------------------- urls --------------------

    def is_resource(self, url: str) -> bool:
        return self.scope.is_resource(url)

    def push_url(self, raw: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
        """Normalize a discovered URL and queue it in the current group once.

        Returns the absolute URL when it is in scope (even if already seen or
        refused by ``can_download``), ``None`` otherwise.
        """
        url = self.scope.normalize(raw, base_url or self._current.url)
        if url is None:
            return None
        with self._lock:
            if url in self._visited:
                return url
            self._visited.add(url)
        if self.options.can_download and not self.options.can_download(
            self.scope.local_path(url), self.is_resource(url)
        ):
            LOGGER.debug("download refused: %s", url)
            return url
        with self._lock:
            self._current.pending.append(url)
        return url

    def transform_found_url(
        self, url: str, current_url: Optional[str] = None, relocatable: bool = True
    ) -> str:
        current_url = current_url or self._current.url
        if self.options.transform_url:
            url = self.options.transform_url(
                url,
                TransformUrlInfo(
                    come_from_page=current_url,
                    crawler=self,
                    require_relocatable_url=self.options.require_relocatable_url,
                ),
            )
        if relocatable and self.options.require_relocatable_url:
            url = self.scope.to_relocatable_path(url, current_url)
        return url

    # -------------------- fetch / retry --------------------

    def _fetch_once(self, url: str, referer: str) -> FetchOutcome:
        try:
            if self.options.fetch:
                return self.options.fetch(self, url, referer)
            LOGGER.info("GET %s", url)
            return self._fetcher.fetch(url, referer)
        except Exception as e:
            return FetchFailure(url, e)

    def process_url(self, source_url: str) -> ProcessUrlResult:
        """Fetch one URL, feed its links back to the queue and store it."""
        started = time.time()
        requested_by = self._current.url
        local_url = self.scope.local_path(source_url)
        transformed_url = source_url
        retry_count = 0

        def signal(state: ProcessUrlResult) -> ProcessUrlResult:
            if self.options.on_url_processed:
                now = time.time()
                self.options.on_url_processed(
                    UrlProcessedInfo(
                        source_url=source_url,
                        url_count=self.url_count,
                        local_url=local_url,
                        transformed_url=transformed_url,
                        requested_by_url=requested_by,
                        state=state,
                        retry_count=retry_count,
                        date=now,
                        elapsed=now - started,
                        cache_key=(
                            self.store.key_for(transformed_url)
                            if self.store is not None
                            else None
                        ),
                    )
                )
            return state

        try:
            if self.store is not None:
                transformed_url = self.transform_found_url(source_url, relocatable=False)
            mapped = self._prepare(source_url, local_url, transformed_url, requested_by)
        except Exception:
            LOGGER.exception("error while preparing %s", source_url)
            return signal(ProcessUrlResult.ERROR)
        if mapped is None:
            return signal(ProcessUrlResult.IGNORED)

        with self._lock:
            self.url_count += 1
        if self.options.pause_seconds > 0:
            time.sleep(self.options.pause_seconds)

        state = ProcessUrlResult.ERROR
        try:
            while True:
                outcome = self._fetch_once(mapped.url, requested_by)
                if isinstance(outcome, FetchFailure):
                    LOGGER.error("error while fetching %s: %s", source_url, outcome)
                    break

                status = outcome.status
                LOGGER.debug("status %s for %s", status, mapped.url)
                if 300 <= status < 400:
                    location = outcome.headers.get("Location")
                    if location:
                        self.push_url(location, source_url)
                    state = ProcessUrlResult.REDIRECTED
                    break

                if not 200 <= status < 300:
                    if not self._should_retry(source_url, retry_count, outcome):
                        LOGGER.warning("failed %s -> HTTP %s", source_url, status)
                        break
                    retry_count += 1
                    continue

                body = self._process_body(source_url, local_url, mapped.url, outcome)
                if self.store is not None:
                    self.store.put(transformed_url, body, requested_by)
                state = ProcessUrlResult.OK
                break
        except Exception:
            LOGGER.exception("error while processing %s", source_url)
            state = ProcessUrlResult.ERROR
        return signal(state)

    def _prepare(
        self, source_url: str, local_url: str, transformed_url: str, requested_by: str
    ) -> Optional[UrlMappingResult]:
        """Remote URL to fetch, ``None`` when the URL is to be ignored."""
        mapped = self.options.url_mapping.resolve(local_url)
        if mapped is None:
            LOGGER.debug("ignored (unmapped): %s", source_url)
            return None

        if self.store is not None and self.options.can_ignore_if_already_crawled:
            if self.store.has(
                transformed_url, requested_by
            ) and self.options.can_ignore_if_already_crawled(local_url, mapped.url):
                LOGGER.debug("ignored (already stored): %s", source_url)
                return None

        if mapped.wake_up_server:
            mapped.wake_up_server()
        return mapped

    def _should_retry(
        self, url: str, retry_count: int, response: CrawlFetchResponse
    ) -> bool:
        if self.options.on_invalid_response_code:
            return bool(self.options.on_invalid_response_code(url, retry_count, response))
        if retry_count < self.options.max_retries:
            delay = self.options.retry_delay_seconds * retry_count
            LOGGER.info(
                "HTTP %s for %s, retry %d in %.1fs",
                response.status,
                url,
                retry_count + 1,
                delay,
            )
            time.sleep(delay)
            return True
        return False

    def _process_body(
        self, source_url: str, local_url: str, remote_url: str, res: CrawlFetchResponse
    ) -> bytes:
        ct = (res.headers.get("Content-Type") or "").lower()
        if ct.startswith("text/html"):
            html = res.text()
            if self.options.rewrite_html_before_processing:
                html = self.options.rewrite_html_before_processing(
                    html, local_url, remote_url
                )
            html = rewrite_html(html, source_url, self)
            if self.options.rewrite_html_before_storing:
                html = self.options.rewrite_html_before_storing(
                    html, local_url, remote_url
                )
            return _encode(html, res.encoding)
        if ct.startswith("text/css"):
            return _encode(rewrite_css(res.text(), source_url, self), res.encoding)
        return res.content()


def _encode(text: str, encoding: Optional[str]) -> bytes:
    try:
        return text.encode(encoding or "utf-8", errors="xmlcharrefreplace")
    except LookupError:
        return text.encode("utf-8")

