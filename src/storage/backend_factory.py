"""
Configuration factory for creating datastores based on settings.
"""

import logging

from datastore.interfaces import IDatastore
from storage.backends.azure_blob_datastore import AzureBlobDatastore
from storage.backends.local_file_datastore import LocalFileDatastore
from storage.storage_settings import StorageConfig

logger = logging.getLogger(__name__)


def create_datastore(storage_config: StorageConfig) -> IDatastore:
    """
    Create the appropriate datastore based on configuration.

    Args:
        storage_config: Configuration object for the storage backend

    Returns:
        Configured datastore instance (not yet opened)

    Raises:
        ValueError: If configuration is invalid or unsupported
    """
    if storage_config.is_azure_storage():
        tuning = {
            "query_concurrency": storage_config.query_concurrency,
            "list_page_size": storage_config.list_page_size,
        }
        if storage_config.uses_shared_key():
            logger.info(
                f"Creating AzureBlobDatastore with shared key for account: {storage_config.account_name}"
            )
            return AzureBlobDatastore(
                container_name=storage_config.container_name,
                account_name=storage_config.account_name,
                account_key=storage_config.account_key.get_secret_value(),
                account_url=storage_config.account_url,
                **tuning,
            )
        elif storage_config.connection_string:
            logger.info(
                f"Creating AzureBlobDatastore with connection string for container: {storage_config.container_name}"
            )
            return AzureBlobDatastore(
                container_name=storage_config.container_name,
                connection_string=storage_config.connection_string.get_secret_value(),
                **tuning,
            )
        else:
            logger.info(
                f"Creating AzureBlobDatastore with managed identity for account: {storage_config.account_name}"
            )
            return AzureBlobDatastore(
                container_name=storage_config.container_name,
                account_name=storage_config.account_name,
                account_url=storage_config.account_url,
                use_managed_identity=True,
                **tuning,
            )

    elif storage_config.is_local_storage():
        logger.info(f"Creating LocalFileDatastore with root path: {storage_config.root_path}")
        return LocalFileDatastore(root_path=storage_config.root_path)

    else:
        raise ValueError(
            "Unsupported storage configuration: neither local nor Azure storage is properly configured"
        )
