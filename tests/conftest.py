# Ensure the src directory is in sys.path for test discovery and imports
import sys
import os

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
src_path = os.path.join(project_root, "src")
for path in (src_path, project_root):
    if path not in sys.path:
        sys.path.insert(0, path)

import logging
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv

from datastore.memory import MapDatastore
from storage.backends.azure_blob_datastore import AzureBlobDatastore
from storage.backends.local_file_datastore import LocalFileDatastore
from tests.helpers.fake_azure import FakeContainerClient

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def load_test_env():
    """
    Automatically load .env.test for all tests in this session.
    """
    env_path = Path(__file__).parent.parent / ".env.test"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=True)
    else:
        logger.debug(f".env.test file not found at {env_path}")


@pytest.fixture
def clean_storage_env(monkeypatch):
    """Removes STORAGE_* and LOG_LEVEL variables so settings tests start from defaults."""
    for key in list(os.environ.keys()):
        if key.startswith("STORAGE_") or key == "LOG_LEVEL":
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


# --- Datastore Fixtures ---


@pytest.fixture
def fake_container() -> FakeContainerClient:
    return FakeContainerClient(container_name=f"test-{uuid.uuid4().hex[:8]}")


@pytest_asyncio.fixture
async def azure_datastore(fake_container: FakeContainerClient):
    """AzureBlobDatastore wired to the in-process fake container, small pages to force paging."""
    store = AzureBlobDatastore(container_client=fake_container, list_page_size=3, query_concurrency=4)
    async with store:
        yield store


@pytest.fixture
def local_datastore(tmp_path) -> LocalFileDatastore:
    return LocalFileDatastore(root_path=str(tmp_path / f"run_{uuid.uuid4().hex[:8]}"))


@pytest_asyncio.fixture(params=["memory", "local", "azure"])
async def datastore(request, tmp_path):
    """Parametrized over every datastore implementation."""
    if request.param == "memory":
        store = MapDatastore()
    elif request.param == "local":
        store = LocalFileDatastore(root_path=str(tmp_path / "local"))
    else:
        store = AzureBlobDatastore(
            container_client=FakeContainerClient(), list_page_size=3, query_concurrency=4
        )
    async with store:
        yield store
