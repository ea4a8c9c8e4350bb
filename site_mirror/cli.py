"""Command line entry point: ``site-mirror URL [OUTPUT_DIR]``."""

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from typing import List, Optional
from urllib.parse import urlparse

from .config import (
    ConfigError,
    Settings,
    build_crawl_options,
    build_fetcher,
    load_config_file,
)
from .crawler import WebSiteCrawler
from .options import UrlProcessedInfo


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="site-mirror",
        description="Crawl a web site and write a relocatable static copy.",
    )
    p.add_argument("url", help="seed url (http:// or https://)")
    p.add_argument(
        "output_dir", nargs="?", default="mirror", help="destination directory"
    )
    p.add_argument("--config", type=str, help="path to config.toml|.yaml", default=None)
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    # site
    p.add_argument(
        "--new-website-url",
        type=str,
        default=None,
        help="origin of the produced site when it differs from the crawled one",
    )
    p.add_argument(
        "--no-relocatable",
        dest="relocatable",
        action="store_false",
        help="keep root-relative urls instead of file-system relative ones",
    )
    p.add_argument(
        "--rewrite-url",
        dest="rewrite_urls",
        action="append",
        default=[],
        help="foreign origin to rewrite onto the site origin (repeatable)",
    )
    p.add_argument(
        "--scan",
        dest="scan_urls",
        action="append",
        default=[],
        help="extra url to fetch, e.g. /css/late.css (repeatable)",
    )

    # crawl
    p.add_argument("--include", type=str, default=None, help="regex pages must match")
    p.add_argument("--exclude", type=str, default=None, help="regex pages must not match")
    p.add_argument("--max-pages", type=int, default=0, help="stop after N pages (0 = all)")
    p.add_argument(
        "--skip-existing",
        action="store_true",
        help="do not fetch again what is already in the output directory",
    )
    p.add_argument("--workers", type=int, default=1, help="parallel resource downloads")
    p.add_argument("--pause", type=float, default=0.0, help="seconds between fetches")
    p.add_argument("--max-retries", type=int, default=3, help="retries on bad status")
    p.add_argument(
        "--retry-delay", type=float, default=1.0, help="seconds x retry number"
    )

    # http
    p.add_argument("--timeout", type=float, default=15.0, help="request timeout")
    p.add_argument(
        "--insecure",
        dest="verify_ssl",
        action="store_false",
        help="do not verify TLS certificates",
    )
    p.add_argument("--user-agent", type=str, default=None)
    p.add_argument(
        "--header",
        dest="extra_headers",
        action="append",
        default=[],
        help="extra request header 'Name: value'",
    )
    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_arg_parser()
    preliminary, _ = parser.parse_known_args(argv)
    if preliminary.config:
        parser.set_defaults(**load_config_file(preliminary.config))
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        output_dir=args.output_dir,
        new_website_url=args.new_website_url,
        pause=args.pause,
        relocatable=args.relocatable,
        rewrite_urls=list(args.rewrite_urls or []),
        scan_urls=list(args.scan_urls or []),
        include=args.include,
        exclude=args.exclude,
        max_pages=max(0, args.max_pages),
        skip_existing=args.skip_existing,
        workers=max(1, args.workers),
        max_retries=args.max_retries,
        retry_delay=args.retry_delay,
        timeout=args.timeout,
        verify_ssl=args.verify_ssl,
        user_agent=args.user_agent,
        extra_headers=list(args.extra_headers or []),
    )


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = parse_args(argv)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if urlparse(args.url).scheme not in {"http", "https"}:
        print("Invalid URL. Use http:// or https://", file=sys.stderr)
        return 2

    counts: Counter = Counter()

    def on_url_processed(info: UrlProcessedInfo) -> None:
        counts[info.state.value] += 1

    settings = settings_from_args(args)
    try:
        options = build_crawl_options(settings, on_url_processed=on_url_processed)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2

    crawler = WebSiteCrawler(args.url, options, fetcher=build_fetcher(settings))
    try:
        info = crawler.start(args.url)
    finally:
        crawler.close()

    summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "nothing"
    print(f"Mirror complete: {summary}")
    print(f"Saved to: {options.output_dir}")
    if info.remaining_stack:
        print(f"Not crawled ({len(info.remaining_stack)}):")
        for u in info.remaining_stack:
            print(f"  {u}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
