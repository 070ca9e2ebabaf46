import logging

import pytest
from pydantic import ValidationError

import config
from config import Settings, configure_logging, get_datastore, get_settings
from storage.backends.azure_blob_datastore import AzureBlobDatastore
from storage.backends.local_file_datastore import LocalFileDatastore

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def reset_settings_cache():
    get_settings.cache_clear()
    root_level = logging.getLogger().level
    azure_level = logging.getLogger("azure").level
    yield
    get_settings.cache_clear()
    logging.getLogger().setLevel(root_level)
    logging.getLogger("azure").setLevel(azure_level)


def test_log_level_is_normalised(clean_storage_env):
    clean_storage_env.setenv("LOG_LEVEL", "debug")

    assert Settings().log_level == "DEBUG"


def test_unknown_log_level_is_rejected(clean_storage_env):
    clean_storage_env.setenv("LOG_LEVEL", "chatty")

    with pytest.raises(ValidationError):
        Settings()


def test_configure_logging_keeps_azure_sdk_quiet():
    configure_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("azure").level == logging.WARNING

    configure_logging("ERROR")
    assert logging.getLogger("azure").level == logging.ERROR


def test_get_settings_reads_env_file(tmp_path, clean_storage_env):
    env_file = tmp_path / ".env"
    env_file.write_text(f"STORAGE_ROOT_PATH={tmp_path / 'ds'}\nLOG_LEVEL=warning\n")

    settings = get_settings(str(env_file))

    assert settings.storage.is_local_storage()
    assert settings.log_level == "WARNING"
    assert logging.getLogger().level == logging.WARNING
    # Cached per env file
    assert get_settings(str(env_file)) is settings


def test_get_datastore_local(tmp_path, clean_storage_env):
    clean_storage_env.setenv("STORAGE_ROOT_PATH", str(tmp_path / "ds"))
    clean_storage_env.chdir(tmp_path)

    store = get_datastore()

    assert isinstance(store, LocalFileDatastore)


def test_get_datastore_azure(tmp_path, clean_storage_env):
    clean_storage_env.setenv("STORAGE_AZURE_CONNECTION_STRING", "UseDevelopmentStorage=true")
    clean_storage_env.setenv("STORAGE_AZURE_CONTAINER_NAME", "cfg-test")
    clean_storage_env.chdir(tmp_path)

    store = get_datastore()

    assert isinstance(store, AzureBlobDatastore)
    assert store.container_name == "cfg-test"


def test_get_datastore_without_configuration(tmp_path, clean_storage_env):
    clean_storage_env.chdir(tmp_path)

    with pytest.raises(ValueError, match="Unsupported storage configuration"):
        config.get_datastore()
