"""Configuration module for catalog-audit."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
