import sys
from functools import lru_cache
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from arm_poller.models import Deadline, PollingConfig


class Settings(BaseSettings):
    """Loaded from ``ARM_POLLER_*`` environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="ARM_POLLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="https://management.azure.com",
        description="Resource Manager endpoint",
    )
    api_version: Optional[str] = Field(default=None, description="Default api-version")
    log_level: str = Field(default="INFO", description="Loguru level")
    request_timeout: float = Field(default=60.0, description="Per-request timeout in seconds")

    create_timeout: float = Field(default=30 * 60.0)
    read_timeout: float = Field(default=5 * 60.0)
    update_timeout: float = Field(default=30 * 60.0)
    delete_timeout: float = Field(default=30 * 60.0)

    min_poll_interval: float = Field(default=1.0, gt=0)
    peering_min_timeout: float = Field(default=15.0, gt=0)

    def polling_config(self) -> PollingConfig:
        return PollingConfig(
            min_interval=self.min_poll_interval,
            initial_delay=max(self.min_poll_interval, 1.0),
        )

    def timeouts(self) -> "ResourceTimeouts":
        return ResourceTimeouts(
            create=self.create_timeout,
            read=self.read_timeout,
            update=self.update_timeout,
            delete=self.delete_timeout,
        )


class ResourceTimeouts(BaseModel):
    create: float = 30 * 60.0
    read: float = 5 * 60.0
    update: float = 30 * 60.0
    delete: float = 30 * 60.0

    def for_create(self, override: Optional[float] = None) -> Deadline:
        return Deadline.after(override if override is not None else self.create)

    def for_read(self, override: Optional[float] = None) -> Deadline:
        return Deadline.after(override if override is not None else self.read)

    def for_update(self, override: Optional[float] = None) -> Deadline:
        return Deadline.after(override if override is not None else self.update)

    def for_delete(self, override: Optional[float] = None) -> Deadline:
        return Deadline.after(override if override is not None else self.delete)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    logger.remove()
    logger.add(sys.stderr, level=(level or get_settings().log_level).upper())
