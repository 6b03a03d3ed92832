"""
Configuration data models for sessionwatch.

These models define the structure of .sessionwatch.json and
~/.config/sessionwatch/config.json files, with validation and type safety
via Pydantic.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerConfig(BaseModel):
    """
    Where the session service lives and how to talk to it.
    """
    base_url: str = Field(
        default="http://localhost:8888",
        min_length=1,
        description="Root URL of the session service"
    )
    api_prefix: str = Field(
        default="/_polo_/api",
        description="Path prefix of the REST API"
    )
    timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-request timeout in seconds"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended safely."""
        return v.rstrip("/")


class PollingConfig(BaseModel):
    """
    Poll loop behavior for tracked sessions.

    A failed poll is retried on the next tick forever; the stalled threshold
    only decides when the failure becomes visible.
    """
    interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Seconds between two polls of a tracked session"
    )
    stalled_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failed polls before a session is shown as stalled"
    )
    follow_logs: bool = Field(
        default=True,
        description="Sync log lines on every poll (status-only when false)"
    )


class SessionwatchConfig(BaseModel):
    """
    Complete sessionwatch configuration.

    Loaded from multiple sources with precedence:
    defaults < user config < project config < env vars
    """
    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Session service connection"
    )
    polling: PollingConfig = Field(
        default_factory=PollingConfig,
        description="Poll loop behavior"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,  # Validate on field assignment
    )
