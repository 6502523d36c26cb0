"""
Configuration management for the Seeds backend.

Loads and validates settings from environment variables and optional
.env files. Exposes a single source of truth for all service configuration.
"""

from backend_seeds.config.settings import SeedsSettings, get_settings, load_settings  # noqa: F401

__all__ = ["SeedsSettings", "get_settings", "load_settings"]
