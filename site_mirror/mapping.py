"""Routing of local site paths to the servers that actually hold them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .urls import origin_of

LOGGER = logging.getLogger(__name__)

WakeUpServer = Callable[[], None]


@dataclass
class UrlMappingResult:
    url: str
    wake_up_server: Optional[WakeUpServer] = None


@dataclass
class _Rule:
    prefix: str
    origin: Optional[str]
    wake_up_server: Optional[WakeUpServer] = None


class UrlMapping:
    """Map a local path such as ``/blog/entry`` to a remote URL.

    Without rules every path is fetched from ``default_origin``. Rules match
    on path prefix, longest first::

        mapping = UrlMapping("https://www.example.com")
        mapping.add("/docs", "https://docs.internal:8080")
        mapping.ignore("/admin")
    """

    def __init__(
        self,
        default_origin: Optional[str] = None,
        wake_up_server: Optional[WakeUpServer] = None,
    ):
        self._default = (
            _Rule("", origin_of(default_origin).rstrip("/"), wake_up_server)
            if default_origin
            else None
        )
        self._rules: List[_Rule] = []

    def add(
        self,
        prefix: str,
        origin: str,
        wake_up_server: Optional[WakeUpServer] = None,
    ) -> "UrlMapping":
        self._rules.append(_Rule(_clean_prefix(prefix), origin.rstrip("/"), wake_up_server))
        self._rules.sort(key=lambda r: len(r.prefix), reverse=True)
        return self

    def ignore(self, prefix: str) -> "UrlMapping":
        self._rules.append(_Rule(_clean_prefix(prefix), None))
        self._rules.sort(key=lambda r: len(r.prefix), reverse=True)
        return self

    def known_origins(self) -> List[str]:
        out: List[str] = []
        for r in ([self._default] if self._default else []) + self._rules:
            if r.origin and r.origin not in out:
                out.append(r.origin)
        return out

    def _match(self, local_path: str) -> Optional[_Rule]:
        for r in self._rules:
            if _prefix_matches(local_path, r.prefix):
                return r
        return self._default

    def resolve(self, local_path: str) -> Optional[UrlMappingResult]:
        """Remote URL for ``local_path``, or ``None`` when it must not be fetched."""
        if not local_path.startswith("/"):
            local_path = "/" + local_path
        rule = self._match(local_path)
        if rule is None or rule.origin is None:
            LOGGER.debug("no mapping for %s", local_path)
            return None
        return UrlMappingResult(rule.origin + local_path, rule.wake_up_server)


def _clean_prefix(prefix: str) -> str:
    if not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix.rstrip("/") or "/"


def _prefix_matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return True
    return path == prefix or path.startswith((prefix + "/", prefix + "?"))
