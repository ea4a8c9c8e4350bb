"""Where fetched bytes go."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator, Optional, Tuple
from urllib.parse import unquote, urlparse

from .urls import with_index_file

LOGGER = logging.getLogger(__name__)

INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"\\|?*]')


def sanitize_segment(name: str) -> str:
    name = INVALID_FILENAME_CHARS_RE.sub("_", name)
    if name in ("", ".", ".."):
        name = "_"
    return name[:200]


def storage_key(url: str) -> str:
    """``https://site/docs`` -> ``docs/index.html``; query and fragment dropped."""
    path = unquote(urlparse(url).path or "/")
    path = with_index_file(path)
    segs = [sanitize_segment(seg) for seg in path.split("/") if seg]
    return "/".join(segs)


class Store:
    def has(self, url: str, requested_by: str) -> bool:
        raise NotImplementedError

    def put(self, url: str, data: bytes, requested_by: str) -> None:
        raise NotImplementedError

    def key_for(self, url: str) -> str:
        return storage_key(url)


class MemoryStore(Store):
    def __init__(self, init: Optional[Dict[str, bytes]] = None):
        self._m: Dict[str, bytes] = dict(init or {})
        self._lock = Lock()

    def has(self, url: str, requested_by: str) -> bool:
        with self._lock:
            return self.key_for(url) in self._m

    def put(self, url: str, data: bytes, requested_by: str) -> None:
        with self._lock:
            self._m[self.key_for(url)] = data

    def get(self, url: str) -> Optional[bytes]:
        with self._lock:
            return self._m.get(self.key_for(url))

    def items(self) -> Iterator[Tuple[str, bytes]]:
        with self._lock:
            snapshot = list(self._m.items())
        yield from snapshot

    def __len__(self) -> int:
        return len(self._m)


class DirectoryStore(Store):
    """Writes every resource under ``root`` following the relocatable layout."""

    def __init__(self, root):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, url: str) -> Path:
        return self.root.joinpath(*self.key_for(url).split("/"))

    def has(self, url: str, requested_by: str) -> bool:
        return self.path_for(url).is_file()

    def put(self, url: str, data: bytes, requested_by: str) -> None:
        p = self.path_for(url)
        p.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".tmp_", dir=str(p.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, p)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
        LOGGER.info("saved %s -> %s", url, p)
