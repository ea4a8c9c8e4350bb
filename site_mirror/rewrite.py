"""Extraction and in-place rewriting of URLs inside HTML and CSS payloads."""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Protocol, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Stylesheet

from .urls import split_fragment

LOGGER = logging.getLogger(__name__)

CSS_URL_RE = re.compile(r"url\(\s*([\"']?)([^)\"']+)\1\s*\)", re.IGNORECASE)
CSS_IMPORT_RE = re.compile(r"@import\s+([\"'])([^\"']+)\1", re.IGNORECASE)

SRC_TAGS = ["img", "script", "iframe", "source"]
HREF_TAGS = ["a", "link"]
SRCSET_TAGS = ["img", "source"]


class LinkCollector(Protocol):
    """What the rewriter needs from the crawler."""

    origin: str

    def push_url(self, raw: Optional[str], base_url: str) -> Optional[str]:
        ...

    def transform_found_url(self, url: str, current_url: str) -> str:
        ...


def bs4_parse(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception:
        return BeautifulSoup(html, "html.parser")


def effective_base_url(soup: BeautifulSoup, fallback: str) -> str:
    tag = soup.find("base", href=True)
    if tag and tag.get("href"):
        return urljoin(fallback, tag["href"])
    return fallback


def serialize_html(soup: BeautifulSoup) -> str:
    try:
        return soup.decode(formatter="html")
    except Exception:
        return str(soup)


def parse_srcset(value: str) -> List[Tuple[str, str]]:
    """``"a.png 1x, b.png 2x"`` -> ``[("a.png", "1x"), ("b.png", "2x")]``.

    A candidate URL runs up to the next whitespace and may itself hold
    commas (``data:`` URLs); only a trailing comma ends it.
    """
    out: List[Tuple[str, str]] = []
    text = value or ""
    pos, n = 0, len(text)
    while True:
        while pos < n and (text[pos].isspace() or text[pos] == ","):
            pos += 1
        if pos >= n:
            break
        start = pos
        while pos < n and not text[pos].isspace():
            pos += 1
        url = text[start:pos]
        if url.endswith(","):
            out.append((url.rstrip(","), ""))
            continue
        start, depth = pos, 0
        while pos < n:
            c = text[pos]
            if c == "(":
                depth += 1
            elif c == ")":
                depth = max(0, depth - 1)
            elif c == "," and depth == 0:
                break
            pos += 1
        out.append((url, text[start:pos].strip()))
    return out


def strip_own_origin(text: str, origin: str) -> str:
    """Turn leftover absolute references to ``origin`` into root-relative ones."""
    pattern = re.compile(re.escape(origin) + r"(?![\w.\-]|:\d)", re.IGNORECASE)

    def repl(m: re.Match) -> str:
        nxt = m.string[m.end() : m.end() + 1]
        return "" if nxt == "/" else "/"

    return pattern.sub(repl, text)


def _url_mapper(
    collector: LinkCollector, base_url: str, relative_to: str
) -> Callable[[str], str]:
    def map_url(raw: str) -> str:
        found = collector.push_url(raw, base_url)
        if not found:
            return raw
        _, frag = split_fragment(raw.strip())
        out = collector.transform_found_url(found, relative_to)
        return f"{out}#{frag}" if frag else out

    return map_url


def rewrite_css_text(
    css: str, base_url: str, collector: LinkCollector, relative_to: Optional[str] = None
) -> str:
    map_url = _url_mapper(collector, base_url, relative_to or base_url)

    def repl_url(m: re.Match) -> str:
        q = m.group(1) or ""
        return f"url({q}{map_url(m.group(2).strip())}{q})"

    def repl_import(m: re.Match) -> str:
        q = m.group(1)
        return f"@import {q}{map_url(m.group(2).strip())}{q}"

    t = CSS_URL_RE.sub(repl_url, css)
    return CSS_IMPORT_RE.sub(repl_import, t)


def rewrite_css(css: str, stylesheet_url: str, collector: LinkCollector) -> str:
    """Queue every reference of a stylesheet, resolved against the stylesheet itself."""
    return strip_own_origin(
        rewrite_css_text(css, stylesheet_url, collector), collector.origin
    )


def rewrite_html(html: str, page_url: str, collector: LinkCollector) -> str:
    """Queue every link of a page and point the markup at the rewritten URLs."""
    soup = bs4_parse(html)
    base = effective_base_url(soup, page_url)
    map_url = _url_mapper(collector, base, page_url)

    for tag in soup.find_all(SRC_TAGS, src=True):
        tag["src"] = map_url(tag["src"])
    for tag in soup.find_all(HREF_TAGS, href=True):
        tag["href"] = map_url(tag["href"])
    for tag in soup.find_all(SRCSET_TAGS, srcset=True):
        parts = [(map_url(u), d) for u, d in parse_srcset(tag["srcset"])]
        tag["srcset"] = ", ".join(f"{u} {d}".strip() for u, d in parts if u)

    for tag in soup.find_all(style=True):
        tag["style"] = rewrite_css_text(tag["style"], base, collector, page_url)
    for style in soup.find_all("style"):
        if style.string:
            style.string.replace_with(
                Stylesheet(rewrite_css_text(style.string, base, collector, page_url))
            )

    # every URL is now resolved, a <base> would break relative ones
    for tag in soup.find_all("base"):
        tag.decompose()

    return strip_own_origin(serialize_html(soup), collector.origin)
