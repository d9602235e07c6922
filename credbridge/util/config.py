"""
Configuration utilities for credbridge.
Provides environment lookup and type casting helpers.
"""

import os
from typing import Any, List, Optional


def get_config_value(key: str, default: Any = None,
                     cast_type: Optional[type] = None,
                     env_prefix: str = "CREDBRIDGE_") -> Any:
    """
    Get configuration value from environment or return default.
    Optionally cast to specified type.

    Empty environment values are treated as unset.
    """
    env_key = f"{env_prefix}{key.upper()}"
    value = os.environ.get(env_key)
    if value is None or value == "":
        value = default

    if value is None or cast_type is None:
        return value

    try:
        if cast_type == bool:
            if isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')
            return bool(value)
        elif cast_type == list:
            # Comma-separated
            if isinstance(value, str):
                return [item.strip() for item in value.split(',') if item.strip()]
            return list(value) if value else []
        else:
            return cast_type(value)
    except (ValueError, TypeError):
        return default


def get_str_config(key: str, default: str = "",
                   env_prefix: str = "CREDBRIDGE_") -> str:
    """Get string configuration value."""
    return get_config_value(key, default, str, env_prefix)


def get_bool_config(key: str, default: bool = False,
                    env_prefix: str = "CREDBRIDGE_") -> bool:
    """Get boolean configuration value."""
    return get_config_value(key, default, bool, env_prefix)


def get_int_config(key: str, default: int = 0,
                   env_prefix: str = "CREDBRIDGE_") -> int:
    """Get integer configuration value."""
    return get_config_value(key, default, int, env_prefix)


def get_float_config(key: str, default: float = 0.0,
                     env_prefix: str = "CREDBRIDGE_") -> float:
    """Get float configuration value."""
    return get_config_value(key, default, float, env_prefix)


def get_list_config(key: str, default: Optional[List[str]] = None,
                    env_prefix: str = "CREDBRIDGE_") -> List[str]:
    """Get list configuration value (comma-separated)."""
    if default is None:
        default = []
    return get_config_value(key, default, list, env_prefix)
