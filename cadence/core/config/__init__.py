"""Configuration package for Cadence.

This package provides Pydantic configuration models and loading utilities.
"""

from cadence.core.config.loader import (
    check_unexpanded_vars,
    expand_env_vars,
    expand_env_vars_recursive,
    load_config,
)
from cadence.core.config.models import (
    AgentConfig,
    ApiConfig,
    ChannelsConfig,
    Config,
    DatabaseConfig,
    LoggingConfig,
    PermissionsConfig,
    RunnerConfig,
    SchedulerConfig,
    TelegramConfig,
    WebhooksConfig,
)

__all__ = [
    # Models
    "AgentConfig",
    "ApiConfig",
    "ChannelsConfig",
    "Config",
    "DatabaseConfig",
    "LoggingConfig",
    "PermissionsConfig",
    "RunnerConfig",
    "SchedulerConfig",
    "TelegramConfig",
    "WebhooksConfig",
    # Loaders
    "check_unexpanded_vars",
    "expand_env_vars",
    "expand_env_vars_recursive",
    "load_config",
]
