"""Durable key-value layer behind the metadata cache.

Values are opaque serialized strings addressed by a string key.  There
is no expiry: entries from earlier service days stay until removed by
something outside this library.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStorage(Protocol):
    """Structural interface of a durable string store.

    Implementations may raise any ``Exception`` (``OSError``, ``ValueError``
    for keys they cannot represent, driver errors); callers treat that as
    "durable layer unavailable".
    """

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage, used when no cache directory is configured."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._items)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


class JsonFileStorage:
    """One file per key under *directory*.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so readers never see a partial value.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not key or key in {".", ".."}:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=self._directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        _logger.debug("Wrote %s", path)
