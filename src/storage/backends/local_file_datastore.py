import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import AsyncIterator, List, Tuple

import aiofiles
import aiofiles.os

from datastore.batch import BasicBatch
from datastore.errors import NotFoundError
from datastore.interfaces import IBatch, IDatastore
from datastore.key import Key, clean_key_path
from datastore.query import Entry, Query, Result, Results, naive_query_apply

logger = logging.getLogger(__name__)

OBJECT_FILENAME = ".dsobject"


class LocalFileDatastore(IDatastore):
    """
    Datastore mirroring keys as directories on the local file system.

    Key ``/foo/bar`` is stored in ``ROOT/foo/bar/.dsobject``. Keys differing
    only in case collide on case-insensitive file systems; use trusted,
    human-friendly keys only.
    """

    def __init__(self, root_path: str):
        self.root_path = Path(root_path).resolve()
        os.makedirs(self.root_path, exist_ok=True)
        logger.info(f"Initialized LocalFileDatastore with root: {self.root_path}")

    def _get_full_path(self, key: Key) -> Path:
        """Resolves a key to its object file, ensuring it stays within the root."""
        relative = str(key).lstrip("/")
        directory = (self.root_path / relative).resolve()
        if directory != self.root_path and self.root_path not in directory.parents:
            raise ValueError(f"Path traversal attempt detected: {key}")
        return directory / OBJECT_FILENAME

    async def put(self, key: Key, value: bytes):
        full_path = self._get_full_path(key)
        tmp_path = full_path.with_name(f"{OBJECT_FILENAME}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="wb") as f:
                await f.write(value)
            await aiofiles.os.replace(tmp_path, full_path)
            logger.debug(f"Saved {len(value)} bytes to {full_path}")
        except Exception as e:
            logger.error(f"Error saving bytes to {full_path}: {e}")
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise

    async def get(self, key: Key) -> bytes:
        full_path = self._get_full_path(key)
        try:
            async with aiofiles.open(full_path, mode="rb") as f:
                data = await f.read()
        except FileNotFoundError:
            raise NotFoundError(key) from None
        logger.debug(f"Loaded {len(data)} bytes from {full_path}")
        return data

    async def has(self, key: Key) -> bool:
        return await aiofiles.os.path.isfile(self._get_full_path(key))

    async def get_size(self, key: Key) -> int:
        try:
            return await aiofiles.os.path.getsize(self._get_full_path(key))
        except FileNotFoundError:
            raise NotFoundError(key) from None

    async def delete(self, key: Key):
        full_path = self._get_full_path(key)
        try:
            await aiofiles.os.remove(full_path)
            logger.debug(f"Deleted file: {full_path}")
        except FileNotFoundError:
            logger.debug(f"Attempted to delete non-existent path: {full_path}")

    def _walk(self, start: Path) -> List[Tuple[str, Path, int]]:
        found = []
        for dirpath, _, filenames in os.walk(start):
            if OBJECT_FILENAME not in filenames:
                continue
            directory = Path(dirpath)
            relative = directory.relative_to(self.root_path).as_posix()
            key = "/" if relative == "." else "/" + relative
            path = directory / OBJECT_FILENAME
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                continue  # deleted while walking
            found.append((key, path, size))
        return found

    async def _iterate(self, q: Query, start: Path) -> AsyncIterator[Result]:
        loop = asyncio.get_running_loop()
        found = await loop.run_in_executor(None, self._walk, start)
        for key, path, size in found:
            entry = Entry(key=key, size=size)
            if not q.keys_only:
                try:
                    async with aiofiles.open(path, mode="rb") as f:
                        entry.value = await f.read()
                except OSError as e:
                    yield Result(entry=entry, error=e)
                    continue
            yield Result(entry=entry)

    async def query(self, q: Query) -> Results:
        prefix = clean_key_path(q.prefix)
        start = self.root_path if prefix == "/" else self._get_full_path(Key(prefix)).parent
        return naive_query_apply(q, Results(q, self._iterate(q, start)))

    async def batch(self) -> IBatch:
        return BasicBatch(self)

    async def disk_usage(self) -> int:
        loop = asyncio.get_running_loop()
        found = await loop.run_in_executor(None, self._walk, self.root_path)
        return sum(size for _, _, size in found)
