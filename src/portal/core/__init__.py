"""Core package - Configuration, exceptions, security, and utilities."""
from .config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
