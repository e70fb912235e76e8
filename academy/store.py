"""Key-partitioned persistent map used as the local fallback cache.

One ``LocalStore`` handle owns one JSON file. Every mutation rewrites the
whole file, so callers read-modify-write complete collections. Two handles on
the same file (or two threads on one handle) can lose each other's updates;
construct a single handle per process and pass it around.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from .constants import MIGRATION_FLAG_KEY
from .utils import load_json_safe, save_json

logger = logging.getLogger('academy.store')


class LocalStore:
    """JSON-file backed key/value store.

    With no path the store lives only in memory, which is what tests use.
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path) if path is not None else None
        self._data: dict[str, Any] = self._read()

    def _read(self) -> dict[str, Any]:
        if self.path is None:
            return {}
        data = load_json_safe(self.path, default=None)
        if data is None:
            if self.path.exists():
                logger.error(f'Local store {self.path} is unreadable, starting empty')
            return {}
        if not isinstance(data, dict):
            logger.error(f'Local store {self.path} is not a JSON object, starting empty')
            return {}
        return data

    def reload(self) -> None:
        """Re-read the backing file, dropping the in-memory copy."""
        self._data = self._read()

    def keys(self) -> list[str]:
        return list(self._data)

    def has(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the value stored under key."""
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def remove(self, *keys: str) -> None:
        self.update({}, remove=keys)

    def update(self, values: dict[str, Any], remove: Iterable[str] = ()) -> None:
        """
        Apply several key writes and removals as one persisted change.

        The file is written first; the in-memory state only changes if the
        write succeeded, so a failed update leaves the store as it was.

        Args:
            values: Keys to set
            remove: Keys to delete

        Raises:
            OSError: If the backing file cannot be written
            TypeError: If a value is not JSON-serializable
        """
        remove = tuple(remove)
        staged = dict(self._data)
        staged.update(copy.deepcopy(values))
        for key in remove:
            staged.pop(key, None)

        if self.path is not None:
            save_json(self.path, staged)
        self._data = staged
        logger.debug(f'Store updated: set={sorted(values)} removed={sorted(remove)}')

    @property
    def migration_completed(self) -> bool:
        """Whether the legacy data migration has run to completion."""
        return bool(self._data.get(MIGRATION_FLAG_KEY, False))
