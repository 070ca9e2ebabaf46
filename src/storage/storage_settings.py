import logging
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from storage.backends.azure_blob_datastore import DEFAULT_QUERY_CONCURRENCY, MAX_LIST_PAGE_SIZE

logger = logging.getLogger(__name__)


class StorageConfig(BaseSettings):
    """
    Unified storage configuration that supports both local and Azure storage
    based on available environment variables.
    """

    model_config = SettingsConfigDict(extra="ignore")

    # Local storage fields
    root_path: Optional[str] = Field(default=None, validation_alias="STORAGE_ROOT_PATH")

    # Azure storage fields
    connection_string: Optional[SecretStr] = Field(
        default=None, validation_alias="STORAGE_AZURE_CONNECTION_STRING"
    )
    account_name: Optional[str] = Field(
        default=None, validation_alias="STORAGE_AZURE_ACCOUNT_NAME"
    )
    account_key: Optional[SecretStr] = Field(
        default=None, validation_alias="STORAGE_AZURE_ACCOUNT_KEY"
    )
    # Custom endpoint, e.g. http://127.0.0.1:10000/devstoreaccount1 for Azurite
    account_url: Optional[str] = Field(
        default=None, validation_alias="STORAGE_AZURE_ACCOUNT_URL"
    )
    use_managed_identity: bool = Field(
        default=False, validation_alias="STORAGE_AZURE_USE_MANAGED_IDENTITY"
    )
    container_name: str = Field(
        default="datastore", validation_alias="STORAGE_AZURE_CONTAINER_NAME"
    )

    # Query tuning
    query_concurrency: int = Field(
        default=DEFAULT_QUERY_CONCURRENCY, ge=1, validation_alias="STORAGE_QUERY_CONCURRENCY"
    )
    list_page_size: int = Field(
        default=MAX_LIST_PAGE_SIZE,
        ge=1,
        le=MAX_LIST_PAGE_SIZE,
        validation_alias="STORAGE_LIST_PAGE_SIZE",
    )

    def uses_shared_key(self) -> bool:
        return bool(self.account_name and self.account_key)

    def is_azure_storage(self) -> bool:
        """Check if this configuration is for Azure storage."""
        return bool(
            self.connection_string
            or self.uses_shared_key()
            or (self.account_name and self.use_managed_identity)
        )

    def is_local_storage(self) -> bool:
        """Check if this configuration is for local storage."""
        return bool(self.root_path and not self.is_azure_storage())
