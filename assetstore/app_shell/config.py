import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "ASSETS_DATA_DIR"
RULES_PATH_ENV = "ASSETS_RULES_PATH"
PUBLIC_BASE_URL_ENV = "ASSETS_PUBLIC_BASE_URL"


class Settings:
    """Process-level paths, resolved from the environment once."""

    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get(DATA_DIR_ENV, "./data"))
        self.db_path = str(self.data_dir / "assets.db")
        self.uploads_dir = self.data_dir / "uploads"
        self.rules_path = Path(os.environ.get(RULES_PATH_ENV, str(self.base_dir / "rules.yaml")))
        # Prefix for url/thumbnail_url in API responses; "" keeps them host-relative
        self.public_base_url = os.environ.get(PUBLIC_BASE_URL_ENV, "").rstrip("/")


def validate_data_dir(settings: Settings) -> None:
    """
    Make sure the data directory exists and is writable before startup.

    Raises:
        RuntimeError: If the directory cannot be created or written
    """
    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RuntimeError(f"Cannot create data directory {settings.data_dir}: {e}") from e

    if not os.access(settings.data_dir, os.W_OK):
        raise RuntimeError(f"Data directory {settings.data_dir} is not writable")

    logger.info("Data directory: %s", settings.data_dir.resolve())
