import abc

from .key import Key
from .query import Query, Results


class IBatch(abc.ABC):
    """Queue of put/delete operations applied by :meth:`commit`."""

    @abc.abstractmethod
    async def put(self, key: Key, value: bytes):
        """Queues a put; nothing is written until commit."""
        pass

    @abc.abstractmethod
    async def delete(self, key: Key):
        """Queues a delete; nothing is removed until commit."""
        pass

    @abc.abstractmethod
    async def commit(self):
        """Applies the queued operations in order, stopping at the first failure."""
        pass


class IDatastore(abc.ABC):
    """
    Generic key/value datastore contract.

    Absence of a key is a normal state: :meth:`has` answers ``False`` and
    :meth:`get`/:meth:`get_size` raise :class:`datastore.errors.NotFoundError`.
    Other backend failures propagate to the caller unchanged.
    """

    @abc.abstractmethod
    async def put(self, key: Key, value: bytes):
        """Stores value under key, replacing any previous value."""
        pass

    @abc.abstractmethod
    async def get(self, key: Key) -> bytes:
        """Returns the value stored under key."""
        pass

    @abc.abstractmethod
    async def has(self, key: Key) -> bool:
        """Checks whether a value is stored under key."""
        pass

    @abc.abstractmethod
    async def get_size(self, key: Key) -> int:
        """Returns the size in bytes of the value stored under key."""
        pass

    @abc.abstractmethod
    async def delete(self, key: Key):
        """Removes the value stored under key. Absent keys are not an error."""
        pass

    @abc.abstractmethod
    async def query(self, q: Query) -> Results:
        """Returns a lazy stream of entries matching the query."""
        pass

    @abc.abstractmethod
    async def batch(self) -> IBatch:
        """Returns a new batch bound to this datastore."""
        pass

    async def sync(self, prefix: Key = Key("/")):
        """Flushes buffered writes under prefix. No-op for unbuffered stores."""
        pass

    @abc.abstractmethod
    async def disk_usage(self) -> int:
        """Returns the bytes used by the datastore."""
        pass

    async def close(self):
        """Releases resources held by the datastore."""
        pass

    async def open(self):
        """Prepares the datastore for use. Called by ``async with``."""
        pass

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
