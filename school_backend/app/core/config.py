"""
Configuration settings for the School Registration Backend.

This module handles application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "School Registration Backend"
    school_name: str = "Future Mirror School"
    api_prefix: str = "/api"
    debug: bool = False
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"
    public_url: str = "http://localhost:8000"
    trust_proxy: bool = False

    # Database Configuration
    database_url: str = "sqlite+aiosqlite:///./school_registry.db"
    db_echo: bool = False
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # Security Configuration (JWT)
    secret_key: str = "your-secret-key-change-this-in-production-min-32-chars"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60
    bcrypt_rounds: int = 10

    # Seed admin (created on startup if missing)
    default_admin_username: str = "admin"
    default_admin_password: str = "admin123"

    # Failed login detection
    failed_login_window_minutes: int = 15
    failed_login_threshold: int = 5

    # Uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 2 * 1024 * 1024

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_storage: str = "memory"  # memory | redis

    # Redis Configuration
    redis_url: str = "redis://localhost:6379/0"
    redis_decode_responses: bool = True

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
