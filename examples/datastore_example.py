"""
Example usage of the datastore with either local or Azure storage.

The backend is picked from the STORAGE_* environment variables (or .env),
see storage/storage_settings.py.
"""

import asyncio
import logging

from config import get_datastore
from datastore.key import Key
from datastore.query import FilterValueCompare, OrderByKey, Query

logger = logging.getLogger(__name__)


async def example_usage():
    """Writes a few keys, queries them back and cleans up."""
    datastore = get_datastore()
    logger.info(f"Using datastore: {type(datastore).__name__}")

    async with datastore:
        batch = await datastore.batch()
        for name, value in [("JohnCleese", b"1939"), ("EricIdle", b"1943"), ("MichaelPalin", b"1943")]:
            await batch.put(Key(f"/Comedy/MontyPython/Actor:{name}"), value)
        await batch.commit()

        query = Query(
            prefix="/Comedy/MontyPython",
            filters=[FilterValueCompare("==", b"1943")],
            orders=[OrderByKey()],
        )
        logger.info(f"Running query: {query}")
        async with await datastore.query(query) as results:
            async for result in results:
                if result.error is not None:
                    logger.warning(f"Failed to read {result.entry.key}: {result.error}")
                    continue
                logger.info(f"{result.entry.key} -> {result.entry.value!r}")

        for entry in await (await datastore.query(Query(prefix="/Comedy", keys_only=True))).rest():
            await datastore.delete(Key(entry.key))


if __name__ == "__main__":
    asyncio.run(example_usage())
