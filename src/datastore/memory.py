import logging
from typing import Dict

from .batch import BasicBatch
from .errors import NotFoundError
from .interfaces import IBatch, IDatastore
from .key import Key
from .query import Entry, Query, Results, naive_query_apply, results_with_entries

logger = logging.getLogger(__name__)


class MapDatastore(IDatastore):
    """Dict-backed datastore. Intended for tests and as a reference backend."""

    def __init__(self):
        self.values: Dict[Key, bytes] = {}

    async def put(self, key: Key, value: bytes):
        self.values[key] = bytes(value)

    async def get(self, key: Key) -> bytes:
        try:
            return self.values[key]
        except KeyError:
            raise NotFoundError(key) from None

    async def has(self, key: Key) -> bool:
        return key in self.values

    async def get_size(self, key: Key) -> int:
        return len(await self.get(key))

    async def delete(self, key: Key):
        self.values.pop(key, None)

    async def query(self, q: Query) -> Results:
        # Snapshot so writes during iteration do not change the stream
        entries = [
            Entry(key=str(key), value=None if q.keys_only else value, size=len(value))
            for key, value in list(self.values.items())
        ]
        return naive_query_apply(q, results_with_entries(q, entries))

    async def batch(self) -> IBatch:
        return BasicBatch(self)

    async def disk_usage(self) -> int:
        return sum(len(value) for value in self.values.values())
