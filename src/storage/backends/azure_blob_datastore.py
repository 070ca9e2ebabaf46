import asyncio
import logging
from typing import List, Optional

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ResourceExistsError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import BlobServiceClient, ContainerClient

from datastore.batch import BasicBatch
from datastore.errors import UnsupportedOperationError
from datastore.interfaces import IBatch, IDatastore
from datastore.key import Key, clean_key_path
from datastore.query import (
    END_OF_RESULTS,
    Entry,
    Query,
    Result,
    Results,
    naive_query_apply,
    results_with_queue,
)
from .azure_errors import is_blob_not_found, is_container_already_exists, translate_error

logger = logging.getLogger(__name__)

DEFAULT_QUERY_CONCURRENCY = 16
# Service-side maximum for a single List Blobs page
MAX_LIST_PAGE_SIZE = 5000


class AzureBlobDatastore(IDatastore):
    """
    Datastore keeping one blob per key in a single Azure Blob Storage container.

    The key string is used verbatim as the blob name. The container is created
    on first use if it does not exist yet. Nothing is cached locally: every
    operation is one request against the service (query issues one listing
    request per page plus one download per entry unless ``keys_only``).

    Query prefixes are pushed down to the listing as ``/prefix/``, so a prefix
    query only sees slash-rooted blob names. Blobs written by other tools
    without a leading slash (``legacy/name``) show up as ``/legacy/name`` in an
    unprefixed query only.

    Authentication, in order of precedence:
      - an explicit ``container_client`` (owned by the datastore from then on),
      - ``account_name`` + ``account_key`` (shared key),
      - ``connection_string``,
      - ``account_name`` + ``use_managed_identity`` (DefaultAzureCredential).
    """

    def __init__(
        self,
        container_name: Optional[str] = None,
        connection_string: Optional[str] = None,
        account_name: Optional[str] = None,
        account_key: Optional[str] = None,
        account_url: Optional[str] = None,
        use_managed_identity: bool = False,
        container_client: Optional[ContainerClient] = None,
        query_concurrency: int = DEFAULT_QUERY_CONCURRENCY,
        list_page_size: int = MAX_LIST_PAGE_SIZE,
    ):
        if container_client is not None:
            self.auth_mode = "container_client"
            container_name = container_name or container_client.container_name
        elif account_name and account_key:
            self.auth_mode = "shared_key"
        elif connection_string:
            self.auth_mode = "connection_string"
        elif account_name and use_managed_identity:
            self.auth_mode = "managed_identity"
        else:
            raise ValueError(
                "Either container_client, (account_name + account_key), connection_string "
                "or (account_name + use_managed_identity=True) must be provided."
            )
        if not container_name:
            raise ValueError("Azure container name is required.")
        if query_concurrency < 1:
            raise ValueError(f"query_concurrency must be at least 1, got {query_concurrency}")
        if not 1 <= list_page_size <= MAX_LIST_PAGE_SIZE:
            raise ValueError(
                f"list_page_size must be between 1 and {MAX_LIST_PAGE_SIZE}, got {list_page_size}"
            )

        self.container_name = container_name
        self.connection_string = connection_string
        self.account_name = account_name
        self._account_key = account_key
        self.account_url = account_url or (
            f"https://{account_name}.blob.core.windows.net" if account_name else None
        )
        self.query_concurrency = query_concurrency
        self.list_page_size = list_page_size

        self._container_client: Optional[ContainerClient] = container_client
        self._service_client: Optional[BlobServiceClient] = None
        self._credential = None
        self._ready = False
        self._open_lock: Optional[asyncio.Lock] = None
        logger.info(
            f"Initialized AzureBlobDatastore for container {container_name} (auth: {self.auth_mode})"
        )

    # --- client lifecycle ---

    def _build_container_client(self) -> ContainerClient:
        if self.auth_mode == "shared_key":
            self._credential = AzureNamedKeyCredential(self.account_name, self._account_key)
            self._service_client = BlobServiceClient(
                account_url=self.account_url, credential=self._credential
            )
            logger.info(f"Using shared key authentication: {self.account_url}")
        elif self.auth_mode == "connection_string":
            self._service_client = BlobServiceClient.from_connection_string(
                self.connection_string
            )
            logger.info("Using connection string for Azure authentication")
        else:
            self._credential = DefaultAzureCredential()
            self._service_client = BlobServiceClient(
                account_url=self.account_url, credential=self._credential
            )
            logger.info(f"Using managed identity for Azure authentication: {self.account_url}")
        return self._service_client.get_container_client(self.container_name)

    async def _ensure_container(self, container_client: ContainerClient):
        try:
            await container_client.create_container()
            logger.info(f"Created Azure container: {self.container_name}")
        except ResourceExistsError as e:
            if not is_container_already_exists(e):
                raise
            logger.info(f"Connected to existing Azure container: {self.container_name}")

    async def _get_container_client(self) -> ContainerClient:
        """Returns the container client, creating the container on first use."""
        if self._ready:
            return self._container_client
        if self._open_lock is None:
            self._open_lock = asyncio.Lock()
        async with self._open_lock:
            if self._ready:
                return self._container_client
            if self._container_client is None:
                if self.auth_mode == "container_client":
                    raise RuntimeError(
                        f"AzureBlobDatastore for container {self.container_name} is closed."
                    )
                self._container_client = self._build_container_client()
            try:
                await self._ensure_container(self._container_client)
                self._ready = True
            except Exception as e:
                logger.error(
                    f"Failed to initialize Azure Blob Storage client for container {self.container_name}: {e}"
                )
                # Drop clients we built so the next call retries from scratch
                if self.auth_mode != "container_client":
                    await self._close_clients()
                raise
        return self._container_client

    async def open(self):
        await self._get_container_client()

    async def _close_clients(self):
        if self._service_client is not None:
            await self._service_client.close()
        elif self._container_client is not None:
            await self._container_client.close()
        self._service_client = None
        self._container_client = None
        if self._credential is not None and hasattr(self._credential, "close"):
            await self._credential.close()
        self._credential = None

    async def close(self):
        """Closes the HTTP sessions held by the SDK clients and the credential."""
        if self._container_client is None and self._credential is None:
            return
        self._ready = False
        try:
            await self._close_clients()
            logger.info(f"Closed Azure clients for container {self.container_name}")
        except Exception as e:
            logger.error(f"Error closing Azure clients for container {self.container_name}: {e}")
            raise

    # --- key/value operations ---

    @staticmethod
    def blob_name(key: Key) -> str:
        return str(key)

    async def _get_blob_client(self, key: Key):
        container_client = await self._get_container_client()
        return container_client.get_blob_client(self.blob_name(key))

    async def put(self, key: Key, value: bytes):
        blob_client = await self._get_blob_client(key)
        try:
            await blob_client.upload_blob(value, overwrite=True)
            logger.debug(f"Saved {len(value)} bytes to Azure blob: {self.container_name}{key}")
        except Exception as e:
            logger.error(f"Error saving bytes to Azure blob {self.container_name}{key}: {e}")
            raise

    async def get(self, key: Key) -> bytes:
        blob_client = await self._get_blob_client(key)
        try:
            downloader = await blob_client.download_blob()
            data = await downloader.readall()
        except Exception as e:
            translated = translate_error(e, key)
            if translated is e:
                logger.error(f"Error loading bytes from Azure blob {self.container_name}{key}: {e}")
                raise
            logger.debug(f"Azure blob not found: {self.container_name}{key}")
            raise translated from e
        logger.debug(f"Loaded {len(data)} bytes from Azure blob: {self.container_name}{key}")
        return data

    async def _get_properties(self, key: Key):
        blob_client = await self._get_blob_client(key)
        return await blob_client.get_blob_properties()

    async def has(self, key: Key) -> bool:
        try:
            await self._get_properties(key)
        except Exception as e:
            if is_blob_not_found(e):
                return False
            logger.error(f"Error checking existence for blob {self.container_name}{key}: {e}")
            raise
        return True

    async def get_size(self, key: Key) -> int:
        try:
            properties = await self._get_properties(key)
        except Exception as e:
            translated = translate_error(e, key)
            if translated is e:
                logger.error(f"Error reading properties of blob {self.container_name}{key}: {e}")
                raise
            raise translated from e
        return int(properties.size)

    async def delete(self, key: Key):
        blob_client = await self._get_blob_client(key)
        try:
            await blob_client.delete_blob(delete_snapshots="include")
            logger.debug(f"Deleted blob: {self.container_name}{key}")
        except Exception as e:
            if is_blob_not_found(e):
                logger.debug(f"Attempted to delete non-existent blob: {self.container_name}{key}")
                return
            logger.error(f"Error deleting blob {self.container_name}{key}: {e}")
            raise

    async def batch(self) -> IBatch:
        return BasicBatch(self)

    async def disk_usage(self) -> int:
        raise UnsupportedOperationError(
            "disk usage is not tracked for Azure Blob Storage containers"
        )

    # --- query ---

    async def query(self, q: Query) -> Results:
        container_client = await self._get_container_client()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.query_concurrency * 2)
        producer = asyncio.ensure_future(self._produce_results(container_client, q, queue))

        async def stop_producer():
            if not producer.done():
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                if not producer.cancelled():
                    raise

        raw = results_with_queue(q, queue, on_close=stop_producer)
        return naive_query_apply(q, raw)

    @staticmethod
    def _listing_prefix(q: Query) -> Optional[str]:
        prefix = clean_key_path(q.prefix)
        return None if prefix == "/" else prefix + "/"

    async def _produce_results(self, container_client: ContainerClient, q: Query, queue: asyncio.Queue):
        """
        Pages through the container listing and pushes one Result per blob.

        Value downloads of a page run concurrently (at most query_concurrency
        at a time) and are all joined before the next page is requested.
        END_OF_RESULTS is pushed once, after every fetch has finished.
        """
        semaphore = asyncio.Semaphore(self.query_concurrency)
        fetches: List[asyncio.Future] = []
        listed = 0
        try:
            try:
                pages = container_client.list_blobs(
                    name_starts_with=self._listing_prefix(q),
                    results_per_page=self.list_page_size,
                ).by_page()
                async for page in pages:
                    async for blob in page:
                        listed += 1
                        entry = Entry(key=str(Key(blob.name)), size=_blob_size(blob))
                        if q.keys_only:
                            await queue.put(Result(entry=entry))
                        else:
                            fetches.append(
                                asyncio.ensure_future(
                                    self._fetch_value(blob.name, entry, semaphore, queue)
                                )
                            )
                    await _join(fetches)
                    logger.debug(
                        f"Listed {listed} blobs so far in container {self.container_name} "
                        f"(continuation token: {getattr(pages, 'continuation_token', None)!r})"
                    )
            except Exception as e:
                logger.error(f"Error listing blobs in container {self.container_name}: {e}")
                await _join(fetches)
                await queue.put(Result(entry=Entry(key=""), error=e))
            await queue.put(END_OF_RESULTS)
        finally:
            pending = [f for f in fetches if not f.done()]
            for fetch in pending:
                fetch.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _fetch_value(self, blob_name: str, entry: Entry, semaphore: asyncio.Semaphore, queue: asyncio.Queue):
        async with semaphore:
            try:
                entry.value = await self.get(Key.raw(blob_name))
                error = None
            except Exception as e:
                logger.warning(f"Failed to fetch value for {entry.key} during query: {e}")
                error = e
        await queue.put(Result(entry=entry, error=error))


async def _join(fetches: List[asyncio.Future]):
    if fetches:
        await asyncio.gather(*fetches)
        fetches.clear()


def _blob_size(blob) -> int:
    size = getattr(blob, "size", None)
    return -1 if size is None else int(size)
