"""Pydantic configuration models for the provisioning layer."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator


class ManagementConfig(BaseModel):
    """Remote management endpoint (REST) settings."""

    endpoint_url: str = "http://localhost:8090"
    timeout_seconds: float = Field(default=30.0, gt=0)
    auth_token: SecretStr | None = None
    # Startup readiness probe only; management calls are never retried.
    ready_max_attempts: int = Field(default=10, ge=1)
    ready_wait_seconds: float = Field(default=2.0, gt=0)

    @field_validator("endpoint_url")
    @classmethod
    def validate_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = f"endpoint_url '{v}' must start with http:// or https://"
            raise ValueError(msg)
        return v.rstrip("/")


class ClientConfig(BaseModel):
    """Defaults applied to client handles."""

    prefetch_count: int = Field(default=0, ge=0)


class LoggingConfig(BaseModel):
    """structlog output settings."""

    level: Literal["debug", "info", "warning", "error"] = "info"
    json_output: bool = False


class ProvisioningConfig(BaseModel, extra="forbid"):
    """Top-level configuration."""

    management: ManagementConfig = ManagementConfig()
    client: ClientConfig = ClientConfig()
    logging: LoggingConfig = LoggingConfig()
