"""Settings for command line crawls and their conversion to ``CrawlOptions``."""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import yaml

from .fetch import RequestsFetcher, build_session, parse_header_lines
from .options import CrawlOptions, ProcessUrlResult

LOGGER = logging.getLogger(__name__)

CONFIG_SECTIONS = ("crawl", "http", "output", "general")


class ConfigError(Exception):
    pass


@dataclass
class Settings:
    output_dir: str = "mirror"
    new_website_url: Optional[str] = None
    pause: float = 0.0
    relocatable: bool = True
    rewrite_urls: List[str] = field(default_factory=list)
    scan_urls: List[str] = field(default_factory=list)

    # Crawl
    include: Optional[str] = None
    exclude: Optional[str] = None
    max_pages: int = 0  # 0 = no limit
    skip_existing: bool = False
    workers: int = 1

    # Retry
    max_retries: int = 3
    retry_delay: float = 1.0

    # HTTP
    timeout: float = 15.0
    verify_ssl: bool = True
    user_agent: Optional[str] = None
    extra_headers: List[str] = field(default_factory=list)  # "Name: value"


def load_config_file(path: Union[str, Path]) -> Dict[str, object]:
    """Read a ``.toml`` or ``.yaml`` file and flatten its known sections."""
    p = Path(path)
    suf = p.suffix.lower()
    try:
        if suf in {".toml", ".tml"}:
            with open(p, "rb") as f:
                data = tomllib.load(f) or {}
        elif suf in {".yaml", ".yml"}:
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            raise ConfigError("Unsupported config format. Use .toml or .yaml")
    except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Top-level config must be a mapping")

    flat = {k: v for k, v in data.items() if not isinstance(v, dict)}
    for section in CONFIG_SECTIONS:
        if isinstance(data.get(section), dict):
            flat.update(data[section])
    return flat


def _compile(pattern: Optional[str], name: str) -> Optional[re.Pattern]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"invalid --{name} pattern {pattern!r}: {e}") from e


def build_can_download(settings: Settings) -> Optional[Callable[[str, bool], bool]]:
    include = _compile(settings.include, "include")
    exclude = _compile(settings.exclude, "exclude")
    if include is None and exclude is None:
        return None

    def can_download(local_url: str, is_resource: bool) -> bool:
        # resources follow their page, filters only apply to pages
        if is_resource:
            return True
        if include is not None and not include.search(local_url):
            return False
        if exclude is not None and exclude.search(local_url):
            return False
        return True

    return can_download


def build_page_limit(max_pages: int) -> Optional[Callable[[str, ProcessUrlResult], bool]]:
    if max_pages <= 0:
        return None
    done = 0

    def on_page(url: str, state: ProcessUrlResult) -> bool:
        nonlocal done
        done += 1
        if done >= max_pages:
            LOGGER.info("reached page limit of %d", max_pages)
            return False
        return True

    return on_page


def build_fetcher(settings: Settings) -> RequestsFetcher:
    session = build_session()
    if settings.user_agent:
        session.headers["User-Agent"] = settings.user_agent
    return RequestsFetcher(
        session,
        timeout=settings.timeout,
        verify_ssl=settings.verify_ssl,
        extra_headers=parse_header_lines(settings.extra_headers),
    )


def build_crawl_options(settings: Settings, **hooks) -> CrawlOptions:
    """``CrawlOptions`` for ``settings``; ``hooks`` are passed through."""
    if settings.workers < 1:
        raise ConfigError("workers must be >= 1")
    if settings.max_retries < 0:
        raise ConfigError("max_retries must be >= 0")

    hooks.setdefault("can_download", build_can_download(settings))
    hooks.setdefault("on_page_fully_downloaded", build_page_limit(settings.max_pages))
    if settings.skip_existing:
        hooks.setdefault("can_ignore_if_already_crawled", lambda local_url, src: True)

    return CrawlOptions(
        output_dir=settings.output_dir,
        new_website_url=settings.new_website_url,
        require_relocatable_url=settings.relocatable,
        pause_seconds=max(0.0, settings.pause),
        rewrite_urls=tuple(settings.rewrite_urls),
        scan_urls=tuple(settings.scan_urls),
        max_retries=settings.max_retries,
        retry_delay_seconds=max(0.0, settings.retry_delay),
        workers=settings.workers,
        **hooks,
    )
