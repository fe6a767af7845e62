"""
Local Key-Value Stores

FileLocalStore keeps one file per key in a data directory, so a corrupt
entry only affects its own collection. MemoryLocalStore is a dict, used
for tests and ephemeral sessions.
"""

import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import quote, unquote

from finance_tracker.services.storage.interface import LocalStore, StorageError


class FileLocalStore(LocalStore):
    """
    File-backed local store.

    Each key is written to `<directory>/<key>.json`, with the key
    percent-encoded so any string maps to its own file inside the
    directory and `keys()` returns it unchanged. Writes go to a
    temporary file first and are moved into place, so a crash mid-write
    leaves the previous value intact.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path]):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not key:
            raise StorageError("Storage key cannot be empty")
        name = quote(key, safe="")
        if name.startswith("."):
            # keep clear of temp files and dot-only names
            name = "%2E" + name[1:]
        return self._directory / f"{name}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory, prefix=".tmp-", suffix=self.SUFFIX
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            raise StorageError(f"Failed to write '{key}': {e}")

    def remove(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to remove '{key}': {e}")

    def keys(self) -> Iterable[str]:
        return sorted(
            unquote(path.name[: -len(self.SUFFIX)])
            for path in self._directory.glob(f"*{self.SUFFIX}")
            if not path.name.startswith(".tmp-")
        )


class MemoryLocalStore(LocalStore):
    """Dict-backed local store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return sorted(self._data)
