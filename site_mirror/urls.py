"""URL cleanup, scope checks and file-system relative paths for one crawl origin."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

RESOURCE_EXTS = {
    ".css",
    ".js",
    ".jpg",
    ".png",
    ".jpeg",
    ".gif",
    ".svg",
    ".webp",
    ".woff",
    ".woff2",
    ".ttf",
    ".txt",
    ".avif",
    ".ico",
}

SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")


def origin_of(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}".lower()


def split_fragment(url: str) -> Tuple[str, str]:
    idx = url.find("#")
    if idx == -1:
        return url, ""
    return url[:idx], url[idx + 1 :]


def strip_query_and_fragment(url: str) -> str:
    for sep in ("?", "#"):
        idx = url.find(sep)
        if idx != -1:
            url = url[:idx]
    return url


def with_index_file(url: str) -> str:
    """Map a directory-like URL onto the ``index.html`` file serving it.

    ``/docs/`` and ``/docs`` both become ``/docs/index.html``, while a last
    segment holding a dot (``/docs/readme.txt``) is left untouched.
    """
    if url.endswith("/"):
        return url + "index.html"
    last = url.rsplit("/", 1)[-1]
    if "." not in last:
        return url + "/index.html"
    return url


def is_resource_url(url: str) -> bool:
    path = urlparse(url).path
    idx = path.rfind(".")
    if idx == -1 or "/" in path[idx:]:
        return False
    return path[idx:].lower() in RESOURCE_EXTS


class CrawlScope:
    """Everything needed to decide whether a URL belongs to the crawl.

    ``target_url`` is the site being produced (its origin is the only one
    accepted), ``rewrite_origins`` lists foreign origins whose URLs are moved
    onto the target origin before the scope check.
    """

    def __init__(
        self,
        target_url: str,
        rewrite_origins: Iterable[str] = (),
        relocatable: bool = True,
    ):
        p = urlparse(target_url)
        if p.scheme not in ("http", "https") or not p.netloc:
            raise ValueError(f"not an http(s) url: {target_url!r}")
        self.scheme = p.scheme
        self.hostname = (p.hostname or "").lower()
        self.origin = origin_of(target_url)
        self.origin_lc = self.origin
        self.required_prefix = self.origin_lc + "/"
        self.relocatable = relocatable
        self.rewrite_origins: List[str] = []
        for o in rewrite_origins:
            self.add_rewrite_origin(o)

    def add_rewrite_origin(self, origin: str) -> None:
        origin = origin.rstrip("/")
        if origin and origin.lower() != self.origin_lc and origin not in self.rewrite_origins:
            self.rewrite_origins.append(origin)

    def rewrite_foreign_origin(self, url: str) -> str:
        lc = url.lower()
        for prefix in self.rewrite_origins:
            plc = prefix.lower()
            if lc == plc or lc.startswith(plc + "/") or lc.startswith(plc + "?"):
                return self.origin + url[len(prefix) :]
        return url

    def local_path(self, url: str) -> str:
        """Origin-relative part of an in-scope URL (``/about?x=1``)."""
        if url.lower().startswith(self.origin_lc):
            return url[len(self.origin) :] or "/"
        return url

    def normalize(self, raw: Optional[str], base_url: str) -> Optional[str]:
        """Resolve ``raw`` against ``base_url`` and return it if it is in scope.

        ``base_url`` is the page URL for references found in HTML and the
        stylesheet URL for references found in CSS. Returns ``None`` for
        anchors, non-http schemes, other hosts and anything outside the
        target origin. The fragment is dropped from the result.
        """
        if not raw:
            return None
        url = raw.strip()
        if not url or url.startswith("#"):
            return None

        if url.startswith("?"):
            url = strip_query_and_fragment(base_url) + url
        elif url.startswith("//"):
            host = (urlparse(url).hostname or "").lower()
            if host != self.hostname:
                return None
            url = f"{self.scheme}:{url}"
        else:
            m = SCHEME_RE.match(url)
            if m:
                if m.group(1).lower() not in ("http", "https"):
                    return None
                url = self.rewrite_foreign_origin(url)
            elif url.startswith("/"):
                url = self.origin + url
            else:
                url = urljoin(base_url, url)

        url, _ = split_fragment(url)
        lc = url.lower()
        if lc == self.origin_lc:
            return self.origin + "/"
        if not lc.startswith(self.required_prefix):
            return None
        # one spelling per URL, the visited set is case sensitive
        return self.origin + url[len(self.origin) :]

    def is_resource(self, url: str) -> bool:
        return is_resource_url(url)

    def to_relocatable_path(self, url: str, current_url: str) -> str:
        """Path from the file storing ``current_url`` to the file storing ``url``.

        A page lives at ``<path>/index.html`` once mirrored, so a page at
        ``/about`` reaches ``/assets/style.css`` through
        ``../assets/style.css`` while the root page uses
        ``assets/style.css``.
        """
        if not self.relocatable:
            return url
        target = with_index_file(strip_query_and_fragment(url))
        if not target.lower().startswith(self.required_prefix):
            return url
        rel = target[len(self.required_prefix) :]

        current = strip_query_and_fragment(current_url or "")
        if not current.lower().startswith(self.required_prefix):
            return rel
        current_rel = with_index_file(current)[len(self.required_prefix) :]
        if current_rel == rel:
            return rel.rsplit("/", 1)[-1]
        return "../" * current_rel.count("/") + rel
