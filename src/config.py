import logging
import sys
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storage.storage_settings import StorageConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Pydantic-settings automatically loads .env files when asked to
    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level


def configure_logging(level: str) -> None:
    logging.getLogger().setLevel(level)
    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger("azure").setLevel(max(logging.getLevelName(level), logging.WARNING))


@lru_cache()
def get_settings(env_file: Optional[str] = ".env") -> Settings:
    logger.info(f"Attempting to load Settings with env_file: {env_file}")
    try:
        storage_config = StorageConfig(_env_file=env_file)
        settings = Settings(storage=storage_config, _env_file=env_file)
        configure_logging(settings.log_level)
        logger.info(
            f"Successfully loaded Settings (azure={settings.storage.is_azure_storage()}, "
            f"local={settings.storage.is_local_storage()})"
        )
        return settings
    except Exception as e:
        logger.error(f"Error loading Settings with env_file {env_file}: {e}", exc_info=True)
        raise


def get_datastore():
    """
    Create and return the datastore described by the current settings.

    Returns:
        Configured datastore instance; use it as ``async with`` to open it.
    """
    from storage.backend_factory import create_datastore

    settings = get_settings()
    return create_datastore(settings.storage)
