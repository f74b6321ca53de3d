"""Read config.yaml into a validated Config.

String values may reference the environment as ``${VAR}`` or, with a
fallback, ``${VAR:-default}``. A reference that is still unresolved
after expansion is a configuration error rather than a literal value.
"""

import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from cadence.core.config.models import Config

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def _map_strings(obj: Any, fn: Callable[[str], Any]) -> Any:
    if isinstance(obj, dict):
        return {key: _map_strings(value, fn) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_map_strings(item, fn) for item in obj]
    if isinstance(obj, str):
        return fn(obj)
    return obj


def expand_env_vars(value: str) -> str:
    """Substitute environment references in one string.

    >>> os.environ["API_KEY"] = "secret123"
    >>> expand_env_vars("Token: ${API_KEY}")
    'Token: secret123'
    >>> expand_env_vars("${UNSET_PORT:-8080}")
    '8080'
    """

    def replacer(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        return default if default is not None else match.group(0)

    return ENV_VAR_PATTERN.sub(replacer, value)


def expand_env_vars_recursive(obj: Any) -> Any:
    """Expand every string in a parsed YAML document."""
    return _map_strings(obj, expand_env_vars)


def check_unexpanded_vars(data: Any, source: str) -> None:
    """Fail on any ``${VAR}`` reference left in expanded data.

    Raises:
        ValueError: Listing each unresolved reference once, sorted.
    """
    unresolved: set[str] = set()

    def collect(value: str) -> str:
        unresolved.update(f"${{{m.group(1)}}}" for m in ENV_VAR_PATTERN.finditer(value))
        return value

    _map_strings(data, collect)
    if unresolved:
        raise ValueError(
            f"Unresolved environment variable(s) in {source}: {', '.join(sorted(unresolved))}. "
            "Export them, add them to .env, or give a ${VAR:-default}."
        )


def load_config(path: Path | str) -> Config:
    """Load and validate a YAML config file.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the YAML is malformed.
        ValueError: If an environment reference cannot be resolved.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    data = yaml.safe_load(config_path.read_text()) or {}
    data = expand_env_vars_recursive(data)
    check_unexpanded_vars(data, source=str(config_path))
    return Config(**data)
