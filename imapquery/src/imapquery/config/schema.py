"""Pydantic models describing the imapquery runtime configuration."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ImapSettings(BaseModel):
    """Server connection defaults."""

    model_config = ConfigDict(extra="forbid")

    host: str = "localhost"
    port: int = Field(default=993, gt=0, le=65535)
    ssl: bool = True
    username: Optional[str] = None
    password_env: str = "IMAPQUERY_PASSWORD"
    default_mailbox: str = "INBOX"
    timeout: float = Field(default=30.0, gt=0)

    @field_validator("default_mailbox")
    @classmethod
    def _non_empty_mailbox(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("default_mailbox must not be empty")
        return value


class SearchSettings(BaseModel):
    """Compiler and result-size limits."""

    model_config = ConfigDict(extra="forbid")

    default_limit: int = Field(default=50, ge=1, le=1000)
    max_query_length: int = Field(default=1000, gt=0)
    attachment_header_heuristic: str = "multipart/mixed"


class PartsSettings(BaseModel):
    """Part listing and download behaviour."""

    model_config = ConfigDict(extra="forbid")

    include_inline: bool = False
    max_download_bytes: int = Field(default=25 * 1024 * 1024, gt=0)


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    imap: ImapSettings = Field(default_factory=ImapSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    parts: PartsSettings = Field(default_factory=PartsSettings)

    @model_validator(mode="after")
    def _check_version(self) -> "RuntimeConfig":
        if self.version != 1:
            raise ValueError("config.yaml version must be 1")
        return self
