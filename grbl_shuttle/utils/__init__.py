"""Utility modules for Grbl Shuttle."""

from .constants import *
from .exceptions import *
from .validation import *
from .config import PendantConfig, get_config_path

__all__ = [
    # Config
    "PendantConfig",
    "get_config_path",
]
