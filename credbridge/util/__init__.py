"""
Utility helpers for credbridge.
"""

from .config import (
    get_config_value,
    get_str_config,
    get_bool_config,
    get_int_config,
    get_float_config,
    get_list_config,
)

__all__ = [
    "get_config_value",
    "get_str_config",
    "get_bool_config",
    "get_int_config",
    "get_float_config",
    "get_list_config",
]
