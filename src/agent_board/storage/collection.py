"""Whole-file YAML collection with serialized read-modify-write.

A collection is one YAML document ``{"version": 1, "<key>": [...]}``.
Readers parse the current file without locking; writers go through
:meth:`YamlCollection.transaction`, which holds the owning store's asyncio
lock for the collection plus a :class:`filelock.FileLock`, rewrites the file
atomically and takes a backup of the previous version first.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Generic, Optional, TypeVar

import yaml
from filelock import FileLock
from pydantic import ValidationError as PydanticValidationError

from ..constants import STORE_VERSION
from ..errors import StorageCorruptionError
from ..io_utils import _atomic_write_yaml
from .backups import BackupRotator

T = TypeVar("T")


class CollectionTx(Generic[T]):
    """In-memory view of a collection inside a write transaction.

    The file is rewritten on exit only when ``dirty`` is set.
    """

    def __init__(self, items: list[T]) -> None:
        self.items = items
        self.dirty = False

    def index_of(self, item_id: str) -> Optional[int]:
        for idx, item in enumerate(self.items):
            if getattr(item, "id", None) == item_id:
                return idx
        return None

    def get(self, item_id: str) -> Optional[T]:
        idx = self.index_of(item_id)
        return self.items[idx] if idx is not None else None


class YamlCollection(Generic[T]):
    def __init__(
        self,
        name: str,
        path: Path,
        lock: Callable[[str], asyncio.Lock],
        backups: BackupRotator,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self.name = name
        self.path = path
        self._lock = lock
        self._file_lock = FileLock(str(path.with_suffix(".lock")))
        self._backups = backups
        self._loader = loader
        self._dumper = dumper

    def _load_raw(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise StorageCorruptionError(self.path, str(exc)) from exc
        if raw is None:
            return []
        if not isinstance(raw, dict):
            raise StorageCorruptionError(self.path, f"expected mapping, got {type(raw).__name__}")
        items = raw.get(self.name) or []
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise StorageCorruptionError(self.path, f"'{self.name}' must be a list of mappings")
        return items

    def load(self) -> list[T]:
        items: list[T] = []
        for idx, raw in enumerate(self._load_raw()):
            try:
                items.append(self._loader(raw))
            except (PydanticValidationError, ValueError, TypeError) as exc:
                raise StorageCorruptionError(self.path, f"record {idx} in '{self.name}': {exc}") from exc
        return items

    def _save(self, items: list[T]) -> None:
        self._backups.snapshot(self.name, self.path)
        payload = {"version": STORE_VERSION, self.name: [self._dumper(item) for item in items]}
        _atomic_write_yaml(self.path, payload)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CollectionTx[T]]:
        """Acquire the collection lock, load, yield, and save if dirty.

        Usage::

            async with collection.transaction() as tx:
                tx.items.append(item)
                tx.dirty = True

        The body must not await: the file lock is held for its duration.
        """
        async with self._lock(self.name):
            with self._file_lock:
                tx = CollectionTx(self.load())
                yield tx
                if tx.dirty:
                    self._save(tx.items)
