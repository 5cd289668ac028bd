"""Pydantic configuration models shared across cachedclient modules.

:class:`ClientConfig` is the single source of truth for how a client talks to
its remote endpoint and which cache collection it uses.  It is normally built
by :func:`~cachedclient.config.resolve_config`, which layers explicit
arguments over environment variables over the defaults declared here.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class ClientConfig(BaseModel):
    """Connection and cache-collection settings for a single client.

    Example::

        ClientConfig(base_url="https://api.example.com", timeout=10)
    """

    base_url: str = Field(description="Base address every relative URL is resolved against")
    collection_name: Optional[str] = Field(
        default=None,
        description="Name of the cache collection; defaults to base_url",
    )
    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Extra headers sent with every request"
    )
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")

    @field_validator("base_url")
    @classmethod
    def _base_url_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("base_url must not be empty")
        return value

    @field_validator("timeout")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @model_validator(mode="after")
    def _default_collection_name(self) -> ClientConfig:
        # An empty name falls back to the base address, like an omitted one.
        if not self.collection_name:
            self.collection_name = self.base_url
        return self
