# knowledge_lifecycle/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.
"""

import hashlib
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    STORAGE_PROVIDER: str = Field(
        default="s3",
        description="Storage provider: s3, local",
    )
    LOCAL_STORAGE_PATH: str = Field(
        default="./storage",
        description="Path for local storage provider",
    )
    S3_BUCKET: str | None = None
    S3_ENDPOINT_URL: str | None = Field(
        default=None,
        description="Custom endpoint for S3-compatible services (MinIO, GCS interop)",
    )
    S3_REGION: str = "us-east-1"

    # Object store layout
    CORPUS_FOLDERS: str = Field(
        default="manuals,processed,temp,chat-exports,troubleshooting,ai-context",
        description="Comma-separated list of hot-tier corpus folders",
    )
    PROCESSED_FOLDER: str = Field(
        default="processed",
        description="Folder holding processed knowledge JSON records",
    )
    ARCHIVE_FOLDER: str = Field(
        default="temp/archives",
        description="Folder that receives archive bundles",
    )
    EXPORT_FOLDER: str = Field(
        default="temp/exports",
        description="Folder that receives full-corpus export bundles",
    )

    # Retention
    ARCHIVE_THRESHOLD_DAYS: int = Field(
        default=30,
        description="Objects at least this old are archivable",
    )
    DELETION_THRESHOLD_DAYS: int = Field(
        default=90,
        description="Objects at least this old are eligible for hard deletion",
    )

    # Duplicate detection
    DUPLICATE_HASH_ALGORITHM: str = Field(
        default="md5",
        description="hashlib algorithm used for the duplicate content digest",
    )
    DUPLICATE_CONTENT_CHARS: int = Field(
        default=1000,
        description="Number of content characters included in the duplicate digest",
    )
    DUPLICATE_SCAN_ORDER: str = Field(
        default="path",
        description="Which copy is the original: 'path' (lexicographic) or 'last_modified' (oldest)",
    )

    # Sweep execution
    STORE_CALL_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Timeout for a single object store call",
    )
    UPLOAD_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Attempts for uploading a finished bundle",
    )
    LIFECYCLE_MAX_WORKERS: int = Field(
        default=1,
        description="Max concurrent downloads while building a bundle or digesting records",
    )
    LIFECYCLE_LEASE_TTL_SECONDS: int = Field(
        default=3600,
        description="Lifetime of the single-sweep lease object",
    )
    ZIP_COMPRESSION_LEVEL: int = Field(
        default=9,
        description="Deflate level (0-9) for archive and export bundles",
    )

    # Logging
    LOG_FORMAT: str = Field(
        default="json",
        description="Log output format: json, text",
    )
    LOG_LEVEL: str = "INFO"

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )

    @property
    def corpus_folder_list(self) -> list[str]:
        """Corpus folders as a list, without surrounding slashes."""
        return [f.strip().strip("/") for f in self.CORPUS_FOLDERS.split(",") if f.strip().strip("/")]

    @field_validator("PROCESSED_FOLDER", "ARCHIVE_FOLDER", "EXPORT_FOLDER")
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        """Folder settings are stored without leading/trailing slashes."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("folder must not be empty")
        return v

    @field_validator("DUPLICATE_HASH_ALGORITHM")
    @classmethod
    def check_hash_algorithm(cls, v: str) -> str:
        """Reject algorithms hashlib does not provide."""
        v = v.lower()
        if v not in hashlib.algorithms_available:
            raise ValueError(f"Unknown hash algorithm: {v}")
        return v

    @field_validator("DUPLICATE_SCAN_ORDER")
    @classmethod
    def check_scan_order(cls, v: str) -> str:
        if v not in ("path", "last_modified"):
            raise ValueError("DUPLICATE_SCAN_ORDER must be 'path' or 'last_modified'")
        return v

    @field_validator("ZIP_COMPRESSION_LEVEL")
    @classmethod
    def check_compression_level(cls, v: int) -> int:
        if not 0 <= v <= 9:
            raise ValueError("ZIP_COMPRESSION_LEVEL must be between 0 and 9")
        return v

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        """Default retention thresholds must form a valid policy."""
        if self.ARCHIVE_THRESHOLD_DAYS <= 0 or self.DELETION_THRESHOLD_DAYS <= 0:
            raise ValueError("Retention thresholds must be positive")
        if self.DELETION_THRESHOLD_DAYS < self.ARCHIVE_THRESHOLD_DAYS:
            raise ValueError("DELETION_THRESHOLD_DAYS must be >= ARCHIVE_THRESHOLD_DAYS")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
