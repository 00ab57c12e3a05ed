"""Configuration management for Cuentas."""

import logging
import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Development mode
    dev_mode: bool = True

    # Data directory
    data_dir: Path = Path.home() / ".cuentas"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]
    log_level: str = "INFO"

    # Upload limits (megabytes)
    max_csv_upload_mb: int = 10
    max_pdf_upload_mb: int = 20

    # Import behaviour
    import_category_group: str = "Importados"  # Parent grouping for auto-created categories
    category_name_max_length: int = 30
    negligible_amount: float = 0.01  # Parsed amounts below this are flagged for review

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # DATA_DIR and data_dir both work
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def db_path(self) -> Path:
        """Get the SQLite database path."""
        suffix = "dev" if self.dev_mode else "prod"
        return self.data_dir / f"cuentas_{suffix}.db"

    @property
    def max_csv_upload_bytes(self) -> int:
        return self.max_csv_upload_mb * 1024 * 1024

    @property
    def max_pdf_upload_bytes(self) -> int:
        return self.max_pdf_upload_mb * 1024 * 1024

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def log_config(self) -> None:
        """Log current configuration."""
        env_file_path = os.path.join(os.getcwd(), ".env")

        logger.info("=" * 60)
        logger.info("CONFIGURATION LOADED")
        logger.info("Working Directory:   %s", os.getcwd())
        logger.info(".env file exists:    %s", os.path.exists(env_file_path))
        logger.info("Dev Mode:            %s", self.dev_mode)
        logger.info("Data Directory:      %s", self.data_dir)
        logger.info("Database:            %s", self.db_path)
        logger.info("API Host:            %s:%s", self.api_host, self.api_port)
        logger.info("Upload limits:       csv=%sMB pdf=%sMB", self.max_csv_upload_mb, self.max_pdf_upload_mb)
        logger.info("Import group:        %s", self.import_category_group)
        logger.info("=" * 60)


# Global settings instance
settings = Settings()
