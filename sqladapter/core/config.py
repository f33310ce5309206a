"""
Adapter configuration using Pydantic Settings.
"""

from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class DatabaseSettings(BaseSettings):
    """
    Database configuration.

    Either set a full SQLAlchemy URL (DB_URL) or the individual parts
    (DB_DRIVER, DB_USER, DB_PASSWORD, DB_HOST, DB_PORT, DB_NAME).
    """

    model_config = SettingsConfigDict(env_prefix="DB_")

    url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL, takes precedence over the parts below",
    )
    driver: str = Field(default="mysql+pymysql", description="SQLAlchemy dialect+driver")
    user: str | None = Field(default=None)
    password: str | None = Field(default=None)
    host: str | None = Field(default="localhost")
    port: int | None = Field(default=None, ge=1, le=65535)
    name: str | None = Field(default=None, description="Database name")
    table_name: str = Field(default="casbin_rule", min_length=1)

    pool_size: int = Field(default=5, ge=1, le=100)
    pool_overflow: int = Field(default=10, ge=0, le=100)
    pool_timeout: int = Field(default=30, ge=1)
    echo: bool = Field(default=False, description="Echo SQL queries")

    def sqlalchemy_url(self) -> URL:
        """Return the configured URL, building it from parts if needed."""
        if self.url:
            return make_url(self.url)
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
        )


class Settings(BaseSettings):
    """Main adapter settings."""

    model_config = SettingsConfigDict(
        env_prefix="ADAPTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or text")

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = {"json", "text"}
        if v not in allowed:
            raise ValueError(f"log_format must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
