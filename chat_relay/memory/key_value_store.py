"""Local key-value stores backing the client's conversation cache."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore(ABC):
    """Minimal string key-value storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value or ``None`` if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""


class InMemoryStore(KeyValueStore):
    """Process-local store; contents vanish with the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStore(KeyValueStore):
    """Stores each key as a UTF-8 file under ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)
        logger.trace("Wrote {} bytes to {}", len(value), path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def build_store(cache_type: str, cache_dir: str | Path) -> KeyValueStore:
    """Return the store selected by ``CACHE_TYPE``."""
    if cache_type == "file":
        return FileStore(cache_dir)
    return InMemoryStore()
