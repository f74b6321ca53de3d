"""Core functionality for Cadence."""

from cadence.core.config import Config, load_config

__all__ = [
    "Config",
    "load_config",
]
