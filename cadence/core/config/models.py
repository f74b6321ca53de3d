"""Pydantic configuration models for Cadence.

This module defines all configuration models used throughout Cadence.
For loading logic, see loader.py.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """Configuration for the SQLite store."""

    path: Path = Field(default=Path("cadence.db"), description="Path to the SQLite database file")


class AgentConfig(BaseModel):
    """Configuration for the agent turn engine."""

    model: str = Field(default="anthropic:claude-sonnet-4-5", description="Model identifier (provider:model)")
    api_key: str | None = Field(default=None, description="API key for the model provider")
    temperature: float = Field(default=0.2, description="Model temperature")
    region: str | None = Field(default=None, description="AWS region for Bedrock models")
    max_rounds: int = Field(default=10, ge=1, description="Maximum tool-use rounds per turn")
    history_window: int = Field(
        default=20, ge=1, description="Messages of web session history shown to the model"
    )
    examples_path: Path | None = Field(
        default=None, description="YAML catalogue for search_code_examples (bundled examples when unset)"
    )

    model_config = {"extra": "allow"}


class RunnerConfig(BaseModel):
    """Connection settings for the sandboxed code runner service."""

    base_url: str | None = Field(default=None, description="Base URL of the code runner service")
    api_key: str | None = Field(default=None, description="Bearer token for the code runner")
    timeout_seconds: float = Field(default=120.0, description="Per-request timeout for runner calls")


class PermissionsConfig(BaseModel):
    """Configuration for human approval of protected operations."""

    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Externally reachable base URL used to build approval links",
    )


class TelegramConfig(BaseModel):
    """Telegram channel settings."""

    enabled: bool = Field(default=False, description="Start the Telegram transport and poller")
    token: str | None = Field(default=None, description="Bot token (falls back to TELEGRAM_BOT_TOKEN)")


class ChannelsConfig(BaseModel):
    """Settings shared by all messaging channels."""

    poll_interval_seconds: float = Field(default=2.0, gt=0, description="Inbound queue poll interval")
    bot_name: str = Field(default="cadence", description="Mention token required in group chats (@bot_name)")
    history_window: int = Field(
        default=10, ge=1, description="Messages of channel session history shown to the model"
    )
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)


class SchedulerConfig(BaseModel):
    """Configuration for the cron workflow scheduler."""

    timezone: str = Field(default="UTC", description="IANA timezone for cron schedules")


class WebhooksConfig(BaseModel):
    """Configuration for inbound third-party webhooks."""

    secrets: dict[str, str] = Field(
        default_factory=dict,
        description="Per-plugin HMAC secrets; plugins without a secret are accepted unsigned",
    )


class ApiConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")


class LoggingConfig(BaseModel):
    """Configuration for logging system."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    directory: str = Field(default="logs", description="Directory for log files")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB before rotation")
    backup_count: int = Field(default=5, description="Number of backup log files to keep")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Reject level names the logging module does not know."""
        if v.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown logging level '{v}'")
        return v.upper()


class Config(BaseModel):
    """Root configuration for Cadence."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    webhooks: WebhooksConfig = Field(default_factory=WebhooksConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "allow"}
