"""
Query model and the naive in-process query evaluator.

Backends produce a raw, unordered stream of :class:`Result` objects for a
:class:`Query`; :func:`naive_query_apply` layers prefix matching, filters,
orders, offset and limit on top of it, so a backend only has to enumerate.
"""

import abc
import asyncio
import functools
import logging
import operator
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
)

from .key import clean_key_path

logger = logging.getLogger(__name__)


@dataclass
class Entry:
    """A key with its value (``None`` for keys-only queries) and size in bytes."""

    key: str
    value: Optional[bytes] = None
    size: int = -1


@dataclass
class Result:
    """One element of a query stream; ``error`` is set when this entry failed."""

    entry: Entry
    error: Optional[BaseException] = None


_COMPARATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def _comparator(op: str) -> Callable[[Any, Any], bool]:
    try:
        return _COMPARATORS[op]
    except KeyError:
        raise ValueError(f"Unknown filter operator: {op!r}") from None


class Filter(abc.ABC):
    @abc.abstractmethod
    def matches(self, entry: Entry) -> bool:
        pass


@dataclass
class FilterValueCompare(Filter):
    op: str
    value: bytes

    def __post_init__(self):
        self._compare = _comparator(self.op)

    def matches(self, entry: Entry) -> bool:
        if entry.value is None:
            return False
        return self._compare(entry.value, self.value)

    def __str__(self) -> str:
        return f"VALUE {self.op} {self.value!r}"


@dataclass
class FilterKeyCompare(Filter):
    op: str
    key: str

    def __post_init__(self):
        self._compare = _comparator(self.op)

    def matches(self, entry: Entry) -> bool:
        return self._compare(entry.key, self.key)

    def __str__(self) -> str:
        return f"KEY {self.op} {self.key!r}"


@dataclass
class FilterKeyPrefix(Filter):
    prefix: str

    def matches(self, entry: Entry) -> bool:
        return entry.key.startswith(self.prefix)

    def __str__(self) -> str:
        return f"PREFIX({self.prefix!r})"


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


class Order(abc.ABC):
    @abc.abstractmethod
    def compare(self, a: Entry, b: Entry) -> int:
        """Negative when ``a`` sorts first, positive when ``b`` does, else 0."""


class OrderByKey(Order):
    def compare(self, a: Entry, b: Entry) -> int:
        return _cmp(a.key, b.key)

    def __str__(self) -> str:
        return "KEY"


class OrderByKeyDescending(Order):
    def compare(self, a: Entry, b: Entry) -> int:
        return -_cmp(a.key, b.key)

    def __str__(self) -> str:
        return "desc(KEY)"


class OrderByValue(Order):
    def compare(self, a: Entry, b: Entry) -> int:
        return _cmp(a.value or b"", b.value or b"")

    def __str__(self) -> str:
        return "VALUE"


class OrderByValueDescending(Order):
    def compare(self, a: Entry, b: Entry) -> int:
        return -_cmp(a.value or b"", b.value or b"")

    def __str__(self) -> str:
        return "desc(VALUE)"


def sort_entries(orders: List[Order], entries: List[Entry]) -> List[Entry]:
    """Stable sort by ``orders``, earlier orders taking precedence."""

    def compare(a: Entry, b: Entry) -> int:
        for order in orders:
            result = order.compare(a, b)
            if result:
                return result
        return 0

    return sorted(entries, key=functools.cmp_to_key(compare))


@dataclass
class Query:
    prefix: str = ""
    filters: List[Filter] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)
    limit: int = 0
    offset: int = 0
    keys_only: bool = False

    def __str__(self) -> str:
        fields = "keys" if self.keys_only else "keys,vals"
        parts = [f"SELECT {fields}"]
        if self.prefix:
            parts.append(f"FROM {self.prefix!r}")
        if self.filters:
            parts.append("FILTER [" + ", ".join(str(f) for f in self.filters) + "]")
        if self.orders:
            parts.append("ORDER [" + ", ".join(str(o) for o in self.orders) + "]")
        if self.offset:
            parts.append(f"OFFSET {self.offset}")
        if self.limit:
            parts.append(f"LIMIT {self.limit}")
        return " ".join(parts)


class Results:
    """
    Lazy async stream of :class:`Result` objects.

    Iterate with ``async for``, or call :meth:`rest` to collect every entry.
    :meth:`close` stops the producer; it runs automatically once the stream is
    exhausted, when the source raises, or when the consuming task is
    cancelled, and is safe to call more than once.
    """

    def __init__(
        self,
        query: Query,
        source: AsyncIterator[Result],
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.query = query
        self._source = source
        self._on_close = on_close
        self._closed = False

    def __aiter__(self) -> "Results":
        return self

    async def __anext__(self) -> Result:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._source.__anext__()
        except StopAsyncIteration:
            await self.close()
            raise
        except BaseException:
            # Cancelled consumers and failing sources still stop the producers
            await asyncio.shield(self.close())
            raise

    async def rest(self) -> List[Entry]:
        """Collects the remaining entries, raising the first per-entry error."""
        entries: List[Entry] = []
        try:
            async for result in self:
                if result.error is not None:
                    raise result.error
                entries.append(result.entry)
        finally:
            await self.close()
        return entries

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        try:
            if aclose is not None:
                await aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "Results":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


async def _iterate_entries(entries: Iterable[Entry]) -> AsyncIterator[Result]:
    for entry in entries:
        yield Result(entry=entry)


def results_with_entries(query: Query, entries: Iterable[Entry]) -> Results:
    """Wraps an already materialised collection of entries."""
    return Results(query, _iterate_entries(entries))


# Sentinel marking end-of-stream on a result queue
END_OF_RESULTS = object()


async def _drain_queue(queue: "asyncio.Queue") -> AsyncIterator[Result]:
    while True:
        item = await queue.get()
        if item is END_OF_RESULTS:
            return
        yield item


def results_with_queue(
    query: Query,
    queue: "asyncio.Queue",
    on_close: Optional[Callable[[], Awaitable[None]]] = None,
) -> Results:
    """
    Reads results pushed onto ``queue`` by producers until
    :data:`END_OF_RESULTS` arrives. Producers must push the sentinel exactly
    once, after all of them are done.
    """
    return Results(query, _drain_queue(queue), on_close=on_close)


async def _iterate_results(results: Results) -> AsyncIterator[Result]:
    async for result in results:
        yield result


async def naive_filter(stream: AsyncIterator[Result], flt: Filter) -> AsyncIterator[Result]:
    async for result in stream:
        if result.error is not None or flt.matches(result.entry):
            yield result


async def naive_order(stream: AsyncIterator[Result], orders: List[Order]) -> AsyncIterator[Result]:
    entries: List[Entry] = []
    async for result in stream:
        if result.error is not None:
            yield result
            continue
        entries.append(result.entry)
    for entry in sort_entries(orders, entries):
        yield Result(entry=entry)


async def naive_offset(stream: AsyncIterator[Result], offset: int) -> AsyncIterator[Result]:
    skipped = 0
    async for result in stream:
        if skipped < offset:
            skipped += 1
            continue
        yield result


async def naive_limit(stream: AsyncIterator[Result], limit: int) -> AsyncIterator[Result]:
    if limit <= 0:
        return
    sent = 0
    async for result in stream:
        yield result
        sent += 1
        if sent >= limit:
            return


def naive_query_apply(query: Query, results: Results) -> Results:
    """Applies prefix, filters, orders, offset and limit of ``query`` in that order."""
    stream = _iterate_results(results)
    prefix = clean_key_path(query.prefix)
    if prefix != "/":
        stream = naive_filter(stream, FilterKeyPrefix(prefix + "/"))
    for flt in query.filters:
        stream = naive_filter(stream, flt)
    if query.orders:
        stream = naive_order(stream, query.orders)
    if query.offset:
        stream = naive_offset(stream, query.offset)
    if query.limit:
        stream = naive_limit(stream, query.limit)
    logger.debug(f"Applying query in-process: {query}")
    return Results(query, stream, on_close=results.close)
