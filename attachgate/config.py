"""Configuration module for attachgate.

This module defines all configuration models and parsing logic.
"""

import sys
import typing as t
from enum import Enum

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from attachgate.notifications import DEFAULT_TOAST_DWELL_SECONDS


class StrictBaseModel(BaseModel):
    """Base model with immutable (frozen) configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


def _validate_http_url(v: str) -> str:
    from urllib.parse import urlparse

    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"Invalid endpoint: '{v}'. Must be http(s)://host[:port]")
    return v


class RefreshPolicy(Enum):
    """How the preview list is rebuilt after a batch of uploads settles.

    Values:
        MERGE: Replace saved previews with the fetched records but keep
               previews still uploading in other batches.
        REPLACE: Replace the whole list with the fetched records.
                 WARNING: previews of another batch still in flight are dropped.
    """

    MERGE = "merge"
    REPLACE = "replace"


class TelemetryConfig(StrictBaseModel):
    """OpenTelemetry configuration for tracing calls to the attachment service.

    Attributes:
        enabled: Enable or disable telemetry tracing
        endpoint: OTLP endpoint URL (e.g., http://localhost:4317)
        console_export: Export traces to console for debugging
        timeout: Timeout in seconds for exporter (default: 10)
        deployment_environment: Deployment environment (e.g., production, staging, dev)
        service_instance_id: Service instance ID (auto-generated if not provided)
    """

    enabled: bool = Field(default=False, alias="enabled")
    endpoint: t.Optional[str] = Field(default=None, alias="endpoint")
    console_export: bool = Field(default=False, alias="console_export")
    timeout: int = Field(default=10, alias="timeout", gt=0)
    deployment_environment: t.Optional[str] = Field(default=None, alias="deployment_environment")
    service_instance_id: t.Optional[str] = Field(default=None, alias="service_instance_id")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: t.Optional[str]) -> t.Optional[str]:
        """Validate endpoint URL format."""
        if v is None:
            return v
        return _validate_http_url(v)


class Config(StrictBaseModel):
    """Attachment widget configuration.

    Attributes:
        instance_url: Base URL of the attachment service
        table_name: Parent record table
        record_id: Parent record id
        extensions: Free-text list of extra allowed extensions
        read_only: Disable uploads and deletes
        session_token: Token sent as X-UserToken; falls back to the session cookie
        toast_dwell_seconds: Time before a toast dismisses itself
        max_toasts: Optional cap on simultaneously shown toasts
        refresh_policy: How previews are rebuilt after a batch settles
        request_timeout: Total timeout in seconds for a single request (none by default)
        telemetry: OpenTelemetry configuration
    """

    instance_url: str = Field(alias="INSTANCE_URL")
    table_name: str = Field(default="", alias="TABLE_NAME")
    record_id: str = Field(default="", alias="RECORD_ID")
    extensions: str = Field(default="", alias="EXTENSIONS")
    read_only: bool = Field(default=False, alias="READ_ONLY")
    session_token: t.Optional[str] = Field(default=None, alias="SESSION_TOKEN")
    toast_dwell_seconds: float = Field(
        default=DEFAULT_TOAST_DWELL_SECONDS, alias="TOAST_DWELL_SECONDS", gt=0
    )
    max_toasts: t.Optional[int] = Field(default=None, alias="MAX_TOASTS", gt=0)
    refresh_policy: RefreshPolicy = Field(default=RefreshPolicy.MERGE, alias="REFRESH_POLICY")
    request_timeout: t.Optional[float] = Field(default=None, alias="REQUEST_TIMEOUT", gt=0)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig, alias="TELEMETRY")

    @field_validator("instance_url")
    @classmethod
    def validate_instance_url(cls, v: str) -> str:
        return _validate_http_url(v).rstrip("/")

    @field_validator("read_only", mode="before")
    @classmethod
    def parse_read_only(cls, v: t.Any) -> t.Any:
        """Accept the string form the widget property arrives in."""
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return v

    @field_validator("extensions", mode="before")
    @classmethod
    def none_to_empty(cls, v: t.Any) -> t.Any:
        return "" if v is None else v

    @field_validator("refresh_policy", mode="before")
    @classmethod
    def parse_refresh_policy(cls, v: t.Any) -> t.Any:
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def has_record(self) -> bool:
        return bool(self.table_name and self.record_id)

    @classmethod
    def parse_yaml(cls, path: str) -> "Config":
        """Parse configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Validated Config instance

        Raises:
            SystemExit: If config file is not found
        """
        try:
            with open(path, "r") as f:
                return cls.model_validate(yaml.safe_load(f))
        except FileNotFoundError:
            print(f"Config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
