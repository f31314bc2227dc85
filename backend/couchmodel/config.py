"""
couchmodel — Application Configuration
========================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the database module, the application factory and the
       CouchDB store (retry defaults).
When:  Loaded once at module import time; validated before the app starts.

Model options (views, REST surface) can be supplied here as JSON so that
`uvicorn couchmodel.main:app` serves a fully configured model:

    MODEL_VIEWS='["_design/article/_view/by_slug"]'
    MODEL_RESTAPI='{"index": true, "views": {"bySlug": true}}'

Leaving MODEL_RESTAPI unset means the served app has no REST surface.
"""

from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from couchmodel.schemas.options import RestApiOptions, ViewRegistration


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes are grouped by concern for readability.
    """

    # ── CouchDB ───────────────────────────────────────────────────────────
    # Server root URL, without the database name
    couchdb_url: str = Field(
        default="http://localhost:5984",
        description="CouchDB server URL",
    )
    couchdb_db_name: str = Field(default="couchmodel", description="Database name")

    # Optional basic-auth credentials; both must be set to be used
    couchdb_username: Optional[str] = Field(default=None)
    couchdb_password: Optional[str] = Field(default=None)

    # Per-request timeout (connect + read) in seconds
    couchdb_timeout: float = Field(default=10.0, ge=1.0, le=120.0)

    # ── Retry Configuration ───────────────────────────────────────────────
    # Tenacity settings for transport-level failures talking to CouchDB.
    # HTTP error statuses are never retried.
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.5, ge=0.0, le=30.0)
    retry_max_wait: float = Field(default=5.0, ge=0.0, le=120.0)

    # ── Model ─────────────────────────────────────────────────────────────
    model_views: List[Union[str, ViewRegistration]] = Field(default_factory=list)
    model_restapi: Optional[RestApiOptions] = Field(default=None)

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Comma-separated origins allowed by CORSMiddleware
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("couchdb_url")
    @classmethod
    def validate_couchdb_url(cls, v: str) -> str:
        """Base URL must be absolute; trailing slashes are dropped."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid couchdb_url '{v}'. Must start with http:// or https://")
        return v.rstrip("/")

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "protected_namespaces": (),
    }

    @property
    def couchdb_auth(self) -> Optional[tuple]:
        """(username, password) when both are configured, else None."""
        if self.couchdb_username and self.couchdb_password:
            return (self.couchdb_username, self.couchdb_password)
        return None


# Singleton instance, imported throughout the application
settings = Settings()
