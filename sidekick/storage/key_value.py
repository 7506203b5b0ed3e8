"""
Key/value storage collaborators.

The repository talks to storage only through get_item, set_item and
remove_item. InMemoryStorage backs tests; JsonFileStorage keeps one file
per key in a directory and backs the CLI.
"""

from pathlib import Path
from typing import Optional, Protocol
import logging

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """String key/value store. I/O errors propagate to the caller."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class InMemoryStorage:
    """Dict-backed storage."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """
    Directory-backed storage with one file per key.

    Values are written as-is to `<directory>/<key>.json`.
    """

    def __init__(self, directory: Path | str):
        """
        Args:
            directory: Directory for storage files, created if missing
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        safe_key = "".join(c for c in key if c.isalnum() or c in "-_.")
        if not safe_key:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{safe_key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        # Readers never see a partially written file
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
        tmp_path.replace(path)
        logger.debug(f"Wrote storage key {key} to {path}")

    def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()
            logger.debug(f"Removed storage key {key}")
