from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pipeline_tracker.constants import (
    BACKUP_SUFFIX,
    DISCORD_API_BASE_URL,
    DISCORD_BASE_DELAY_S,
    DISCORD_JITTER_RATIO,
    DISCORD_MAX_DELAY_S,
    DISCORD_MAX_RETRIES,
    DISCORD_REQUEST_TIMEOUT_S,
    STATE_FILE_NAME,
)


class RetryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_retries: int = Field(default=DISCORD_MAX_RETRIES, ge=0)
    base_delay_s: float = Field(default=DISCORD_BASE_DELAY_S, ge=0)
    max_delay_s: float = Field(default=DISCORD_MAX_DELAY_S, ge=0)
    jitter_ratio: float = Field(default=DISCORD_JITTER_RATIO, ge=0, le=1)

    @model_validator(mode="after")
    def validate_delays(self) -> "RetryConfig":
        if self.max_delay_s < self.base_delay_s:
            raise ValueError("'max_delay_s' must be >= 'base_delay_s'")
        return self


class DiscordConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    api_base_url: str = DISCORD_API_BASE_URL
    request_timeout_s: float = Field(default=DISCORD_REQUEST_TIMEOUT_S, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid api_base_url: {v}. Expected an http(s) URL")
        return v.rstrip("/")


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    state_file: str = STATE_FILE_NAME
    backup_suffix: str = BACKUP_SUFFIX
    directory: Optional[Path] = None  # None = process working directory

    @field_validator("state_file")
    @classmethod
    def validate_state_file(cls, v: str) -> str:
        if not v.strip() or "/" in v or "\\" in v:
            raise ValueError(f"Invalid state_file: {v!r}. Expected a bare file name; use 'directory' for the location")
        return v

    @field_validator("backup_suffix")
    @classmethod
    def validate_backup_suffix(cls, v: str) -> str:
        if not v:
            raise ValueError("'backup_suffix' must not be empty")
        return v


class TrackerConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    log_level: Optional[str] = None
