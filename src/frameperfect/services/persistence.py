"""Durable key-value stores mirroring projects and frames.

Two logical collections (``projects``, ``frames``) keyed by entity id, with
lookups on a secondary field (``project_id``, ``is_keeper``). The in-memory
session state stays authoritative; these stores only mirror it.
"""

import asyncio
import copy
import json
import logging
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

PROJECTS = "projects"
FRAMES = "frames"

Record = dict[str, Any]

_SAFE_KEY = re.compile(r"[A-Za-z0-9_-]+")


@runtime_checkable
class DurableStore(Protocol):
    async def put(self, collection: str, key: str, value: Record) -> None: ...

    async def put_many(self, collection: str, items: dict[str, Record]) -> None: ...

    async def get(self, collection: str, key: str) -> Record | None: ...

    async def get_all(self, collection: str) -> list[Record]: ...

    async def get_all_by(self, collection: str, field: str, value: Any) -> list[Record]: ...

    async def delete(self, collection: str, key: str) -> None: ...

    async def delete_many(self, collection: str, keys: list[str]) -> None: ...


class MemoryStore:
    """Process-local store; used in tests and when persistence is disabled."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Record]] = {}

    def _collection(self, name: str) -> dict[str, Record]:
        return self._collections.setdefault(name, {})

    async def put(self, collection: str, key: str, value: Record) -> None:
        self._collection(collection)[key] = copy.deepcopy(value)

    async def put_many(self, collection: str, items: dict[str, Record]) -> None:
        self._collection(collection).update(copy.deepcopy(items))

    async def get(self, collection: str, key: str) -> Record | None:
        value = self._collection(collection).get(key)
        return copy.deepcopy(value) if value is not None else None

    async def get_all(self, collection: str) -> list[Record]:
        return [copy.deepcopy(v) for v in self._collection(collection).values()]

    async def get_all_by(self, collection: str, field: str, value: Any) -> list[Record]:
        return [
            copy.deepcopy(v)
            for v in self._collection(collection).values()
            if v.get(field) == value
        ]

    async def delete(self, collection: str, key: str) -> None:
        self._collection(collection).pop(key, None)

    async def delete_many(self, collection: str, keys: list[str]) -> None:
        records = self._collection(collection)
        for key in keys:
            records.pop(key, None)


class JsonFileStore:
    """Manages JSON persistence, one file per record.

    Layout::

        data_dir/
        ├── projects/{id}.json
        ├── frames/{id}.json
        └── frames.batch.json    # multi-put not yet applied

    A ``put`` rewrites only its own record. A ``put_many`` is first written as
    one batch file; once that file is on disk the batch is committed, and a
    batch interrupted while being applied is replayed on the next load.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, dict[str, Record]] = {}
        self._lock = asyncio.Lock()

    # -- read ----------------------------------------------------------------

    async def get(self, collection: str, key: str) -> Record | None:
        records = await self._load(collection)
        value = records.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def get_all(self, collection: str) -> list[Record]:
        records = await self._load(collection)
        return [copy.deepcopy(v) for v in records.values()]

    async def get_all_by(self, collection: str, field: str, value: Any) -> list[Record]:
        records = await self._load(collection)
        return [copy.deepcopy(v) for v in records.values() if v.get(field) == value]

    # -- write ---------------------------------------------------------------

    async def put(self, collection: str, key: str, value: Record) -> None:
        dest = self._record_path(collection, key)
        async with self._lock:
            records = await self._load(collection)
            content = json.dumps(value, ensure_ascii=False)
            await asyncio.to_thread(self._atomic_write, dest, content)
            records[key] = copy.deepcopy(value)
        logger.debug("Persisted %s record %s", collection, key)

    async def put_many(self, collection: str, items: dict[str, Record]) -> None:
        if not items:
            return
        for key in items:
            self._record_path(collection, key)
        async with self._lock:
            records = await self._load(collection)
            batch = self._batch_path(collection)
            content = json.dumps(items, ensure_ascii=False)
            await asyncio.to_thread(self._atomic_write, batch, content)
            records.update(copy.deepcopy(items))
            try:
                await asyncio.to_thread(self._apply_batch, collection, batch, items)
            except OSError as e:
                logger.warning(
                    "Batch of %d %s record(s) committed but not applied, "
                    "will replay on next load: %s", len(items), collection, e,
                )
        logger.debug("Persisted %d %s record(s)", len(items), collection)

    async def delete(self, collection: str, key: str) -> None:
        await self.delete_many(collection, [key])

    async def delete_many(self, collection: str, keys: list[str]) -> None:
        async with self._lock:
            records = await self._load(collection)
            removed = 0
            for key in keys:
                if key not in records:
                    continue
                await asyncio.to_thread(self._record_path(collection, key).unlink, missing_ok=True)
                del records[key]
                removed += 1
            if removed:
                logger.info("Deleted %d %s record(s)", removed, collection)

    # -- internal ------------------------------------------------------------

    def _record_path(self, collection: str, key: str) -> Path:
        if not _SAFE_KEY.fullmatch(key):
            raise ValueError(f"Unsafe record key: {key!r}")
        return self._data_dir / collection / f"{key}.json"

    def _batch_path(self, collection: str) -> Path:
        return self._data_dir / f"{collection}.batch.json"

    async def _load(self, collection: str) -> dict[str, Record]:
        if collection not in self._cache:
            self._cache[collection] = await asyncio.to_thread(
                self._read_collection, collection
            )
        return self._cache[collection]

    def _read_collection(self, collection: str) -> dict[str, Record]:
        directory = self._data_dir / collection
        directory.mkdir(parents=True, exist_ok=True)

        batch = self._batch_path(collection)
        if batch.exists():
            pending = self._read_json(batch)
            if pending:
                self._apply_batch(collection, batch, pending)
                logger.info("Replayed %d pending %s record(s)", len(pending), collection)

        records: dict[str, Record] = {}
        for path in sorted(directory.glob("*.json")):
            data = self._read_json(path)
            if data is not None:
                records[path.stem] = data
        return records

    def _apply_batch(self, collection: str, batch: Path, items: dict[str, Record]) -> None:
        for key, value in items.items():
            self._atomic_write(
                self._record_path(collection, key), json.dumps(value, ensure_ascii=False)
            )
        batch.unlink(missing_ok=True)

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any] | None:
        try:
            data = json.loads(path.read_text("utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load %s: %s", path.name, e)
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _atomic_write(dest: Path, content: str) -> None:
        """Write via temp file + rename to avoid partial writes."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(dest.parent), suffix=".tmp"
        )
        try:
            with open(tmp_fd, "w", encoding="utf-8") as f:
                f.write(content)
            Path(tmp_path).replace(dest)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
