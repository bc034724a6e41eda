"""
Persistence backends for the history store.

The store only needs two opaque operations: ``load() -> bytes | None`` and
``save(data) -> bool``.  ``FileStorage`` keeps the blob in a single file and
writes atomically (write-tmp then rename); ``MemoryStorage`` keeps it in a
dict, keyed the same way.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol

from .constants import HISTORY_STORAGE_KEY

logger = logging.getLogger(__name__)

_DEFAULT_DIR = os.path.join(Path.home(), ".speedprobe")


class Storage(Protocol):
    def load(self) -> Optional[bytes]: ...

    def save(self, data: bytes) -> bool: ...


def default_history_path() -> str:
    return os.path.join(_DEFAULT_DIR, f"{HISTORY_STORAGE_KEY}.json")


class FileStorage:
    """Single-file blob storage."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or default_history_path()

    def load(self) -> Optional[bytes]:
        """Return the stored bytes, or None if nothing was saved yet.

        Read errors propagate as ``OSError``.
        """
        if not os.path.isfile(self.path):
            return None
        with open(self.path, "rb") as fh:
            return fh.read()

    def save(self, data: bytes) -> bool:
        dir_path = os.path.dirname(self.path) or "."
        tmp = os.path.join(dir_path, f".tmp_{os.path.basename(self.path)}")

        try:
            os.makedirs(dir_path, exist_ok=True)
            with open(tmp, "wb") as fh:
                fh.write(data)
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error("Failed to write %s: %s", self.path, exc)
            try:
                os.unlink(tmp)
            except OSError:
                pass
            return False
        return True


class MemoryStorage:
    """In-process storage; the blob lives only as long as the object."""

    def __init__(self, key: str = HISTORY_STORAGE_KEY, data: Optional[bytes] = None) -> None:
        self.key = key
        self._blobs: Dict[str, bytes] = {}
        if data is not None:
            self._blobs[key] = data

    def load(self) -> Optional[bytes]:
        return self._blobs.get(self.key)

    def save(self, data: bytes) -> bool:
        self._blobs[self.key] = data
        return True
