# inventory/config.py
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    # "embedded" keeps a SQLite image in a blob store, "remote" talks to a hosted table API
    STORAGE_BACKEND: Literal["embedded", "remote"] = "embedded"

    # Blob store holding the serialized database image
    BLOB_STORE: Literal["object", "file", "memory"] = "object"
    DATA_DIR: Path = Path("data")
    BLOB_KEY: str = "database"
    OBJECT_STORE_NAME: str = "sqlite-data"
    OBJECT_STORE_FILE: str = "inventory-objects.sqlite3"
    BLOB_FILE: str = "inventory-database.db"
    # Superseded text representation, read once and migrated
    LEGACY_BLOB_FILE: str = "inventory-database.txt"

    # Hosted backend
    REMOTE_URL: Optional[str] = None
    REMOTE_API_KEY: Optional[str] = None
    REMOTE_TIMEOUT: float = 10.0

    # Thumbnails stored with each product
    IMAGE_MAX_SIZE: int = 300
    IMAGE_QUALITY: int = 80
    IMAGE_PATH_PREFIX: str = "sale-data"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(env_path),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
