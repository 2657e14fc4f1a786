"""
Application configuration loaded from environment variables.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """TMember server configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "tmember"
    db_password: str = "password"
    db_name: str = "tmember_dev"
    db_max_idle_conns: int = 10
    db_max_open_conns: int = 100
    db_conn_max_lifetime: int = 3600  # seconds
    database_url: Optional[str] = None  # overrides the DB_* parts when set

    # Security
    jwt_secret: str = "tmember-dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 24 * 60
    bcrypt_rounds: int = 12

    # Logging
    log_level: str = "info"
    log_format: Literal["json", "text"] = "json"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # CORS
    cors_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
