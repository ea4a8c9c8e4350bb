"""Crawl a web site and produce a relocatable, file-system hosted copy.

Example usage:

    from site_mirror import CrawlOptions, WebSiteCrawler

    crawler = WebSiteCrawler(
        "https://www.example.com",
        CrawlOptions(output_dir="./mirror", pause_seconds=0.2),
    )
    info = crawler.start()
    print(info.remaining_stack)
"""

from .crawler import CrawlUrlGroup, WebSiteCrawler
from .fetch import CrawlFetchResponse, FetchFailure, RequestsFetcher
from .mapping import UrlMapping, UrlMappingResult
from .options import (
    CrawlFinishedInfo,
    CrawlOptions,
    ProcessUrlResult,
    TransformUrlInfo,
    UrlProcessedInfo,
    UrlSortTools,
)
from .stores import DirectoryStore, MemoryStore, Store
from .urls import CrawlScope, is_resource_url, with_index_file

__all__ = [
    # Crawl session
    "WebSiteCrawler",
    "CrawlUrlGroup",
    "CrawlOptions",
    "CrawlFinishedInfo",
    "ProcessUrlResult",
    "TransformUrlInfo",
    "UrlProcessedInfo",
    "UrlSortTools",
    # Collaborators
    "CrawlFetchResponse",
    "FetchFailure",
    "RequestsFetcher",
    "UrlMapping",
    "UrlMappingResult",
    "Store",
    "MemoryStore",
    "DirectoryStore",
    # URL tools
    "CrawlScope",
    "is_resource_url",
    "with_index_file",
]
