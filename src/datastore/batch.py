import logging
from typing import List, Optional, Tuple

from .errors import BatchCommitError
from .interfaces import IBatch, IDatastore
from .key import Key

logger = logging.getLogger(__name__)

PUT = "put"
DELETE = "delete"


class BasicBatch(IBatch):
    """
    Batch that replays queued operations against a datastore one by one.

    There is no atomicity: operations applied before a failure stay applied.
    Operations from the failing one onwards stay queued so a caller may retry
    the commit.
    """

    def __init__(self, datastore: IDatastore):
        self.datastore = datastore
        self._ops: List[Tuple[str, Key, Optional[bytes]]] = []

    async def put(self, key: Key, value: bytes):
        self._ops.append((PUT, key, value))

    async def delete(self, key: Key):
        self._ops.append((DELETE, key, None))

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self):
        logger.debug(f"Committing batch of {len(self._ops)} operations")
        applied = 0
        try:
            for index, (op, key, value) in enumerate(self._ops):
                try:
                    if op == PUT:
                        await self.datastore.put(key, value)
                    else:
                        await self.datastore.delete(key)
                except Exception as e:
                    logger.error(f"Batch {op} #{index} for key {key} failed: {e}")
                    raise BatchCommitError(index, op, key, e) from e
                applied += 1
        finally:
            del self._ops[:applied]
