"""
Core configuration and settings management.

Uses Pydantic settings for environment-based configuration with
sensible defaults for local development. Every field can be overridden
with an LCA_SCORER_-prefixed environment variable or a .env file.
"""

from functools import lru_cache
from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_prefix="LCA_SCORER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )
    
    # Scoring Settings
    tolerance: float = Field(default=1e-6, gt=0, le=1e-2)
    error_policy: Literal["abort", "collect"] = "collect"
    max_workers: int = Field(default=1, ge=1)
    
    # Serialized Model Definition (JSON); the embedded reference model when unset
    model_path: Optional[str] = None
    
    # Certification
    certification_decimals: int = Field(default=5, ge=1, le=12)
    
    # Logging
    log_level: str = "INFO"
    
    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_workers: int = 1


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
