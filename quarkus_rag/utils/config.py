"""Configuration management for environment variables and run settings."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from quarkus_rag.utils.exceptions import ConfigurationError

DEFAULT_DOCLING_URL = "http://localhost:5001"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536
DEFAULT_REQUEST_TIMEOUT = 30.0


class Config:
    """Service endpoints and credentials loaded from environment variables."""

    def __init__(self, require_database: bool = True) -> None:
        """Load configuration from .env file and environment.

        Args:
            require_database: Fail when DATABASE_URL is missing (dry runs don't need it)

        Raises:
            ConfigurationError: If a required variable is missing or malformed
        """
        env_path = Path(".env")
        if env_path.exists():
            load_dotenv(env_path)

        if require_database:
            self.database_url: str | None = self._get_required("DATABASE_URL")
        else:
            self.database_url = os.getenv("DATABASE_URL") or None

        self.docling_url = os.getenv("DOCLING_URL", DEFAULT_DOCLING_URL)
        self.openai_api_key = os.getenv("OPENAI_API_KEY") or None
        self.embedding_model = os.getenv("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL)
        self.embedding_base_url = os.getenv("EMBEDDING_BASE_URL") or None
        self.embedding_dimensions = self._get_int(
            "EMBEDDING_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS
        )
        self.request_timeout = self._get_float("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    def _get_required(self, key: str) -> str:
        """Get required environment variable or raise error.

        Args:
            key: Environment variable name

        Returns:
            Environment variable value

        Raises:
            ConfigurationError: If variable is not set
        """
        value = os.getenv(key)
        if not value:
            raise ConfigurationError(f"{key} environment variable is not set")
        return value

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        raw = os.getenv(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        raw = os.getenv(key)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError as e:
            raise ConfigurationError(f"{key} must be a number, got {raw!r}") from e

    @staticmethod
    def get_optional(key: str, default: str | None = None) -> str | None:
        """Get optional environment variable with default value.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            Environment variable value or default
        """
        return os.getenv(key, default)


class IngestionSettings(BaseModel):
    """Validated options for one corpus build.

    Invalid combinations are rejected here, before any guide is processed.
    """

    quarkus_version: str
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=300, ge=0)
    semantic_chunking: bool = False
    max_guides: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @field_validator("quarkus_version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        """Reject blank versions; surrounding whitespace is dropped."""
        value = value.strip()
        if not value:
            raise ValueError("quarkus_version cannot be empty")
        return value

    @model_validator(mode="after")
    def validate_overlap(self) -> "IngestionSettings":
        """Overlap must leave room for the window to advance."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self


def load_settings(**options: Any) -> IngestionSettings:
    """Build IngestionSettings, translating validation failures.

    Raises:
        ConfigurationError: If any option is missing or invalid
    """
    try:
        return IngestionSettings(**options)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid ingestion settings: {details}") from e
