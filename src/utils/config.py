"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow"
    )

    # Redis Configuration
    redis_uri: Optional[str] = Field(default=None, description="Redis connection URI (takes precedence over individual settings)")
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_password: Optional[str] = Field(default=None, description="Redis password")
    redis_db: int = Field(default=0, description="Redis database number")
    redis_connect_timeout: float = Field(default=5.0, description="Redis connect timeout in seconds")
    redis_socket_timeout: float = Field(default=10.0, description="Redis per-request socket timeout in seconds")

    # Tool behaviour
    redis_scan_batch_size: int = Field(default=100, description="COUNT hint passed to each SCAN round")
    redis_scan_limit: int = Field(default=1000, description="Maximum number of keys returned by the list tool")
    redis_stream_read_count: int = Field(default=10, description="Default number of stream records returned by get")
    redis_delete_fallback_whole_key: bool = Field(
        default=True,
        description="Delete the whole key when a delete qualifier does not match the key's type"
    )

    # Application Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    def get_redis_uri(self) -> str:
        """Get or construct Redis connection URI."""
        if self.redis_uri:
            return self.redis_uri

        # Construct URI from components
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings loaded from environment.
    """
    return Settings()
