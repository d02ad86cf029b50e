# core/config.py
from functools import lru_cache
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WORKFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # Traversal
    max_loop: int = Field(default=3, ge=0)
    code_keys: List[str] = Field(default_factory=lambda: ["code"])

    # Execution host
    host_timeout: float = Field(default=300.0, gt=0)
    shutdown_grace_period: float = Field(default=5.0, ge=0)
    poll_interval: float = Field(default=0.1, gt=0)

    # Extra directories scanned for adapter plugins (manifest.yaml)
    plugin_dirs: List[str] = Field(default_factory=list)

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
