# WORKFLOW: Core configuration management for the Parcel Compliance API.
# Used by: All modules throughout the application
# Configuration includes:
# - Database connection settings
# - Register import settings (header mappings, upload limits)
# - Classification job settings (worker pool, failure threshold, retention)
# - Security settings (JWT)
# - API settings (CORS, prefix, server)
# - Logging configuration
#
# Loaded at startup and used by all services for consistent configuration.

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./parcel_compliance.db"

    # Register import
    mapping_dir: str = str(PROJECT_ROOT / "mapping")
    mapping_schema_path: str = str(PROJECT_ROOT / "schema" / "register_mapping.schema.json")
    default_document_type: str = "wbr"
    max_upload_bytes: int = 50 * 1024 * 1024

    # Classification jobs
    max_concurrent_jobs: int = 4
    max_parcel_failures: Optional[int] = None
    job_retention_seconds: int = 3600

    # Security
    auth_enabled: bool = False
    secret_key: str = "your-secret-key-here-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # API
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Parcel Compliance API"
    version: str = "1.0.0"

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS
    allowed_origins: list[str] = ["*"]
    allowed_methods: list[str] = ["*"]
    allowed_headers: list[str] = ["*"]

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
