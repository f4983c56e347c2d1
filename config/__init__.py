"""Configuration module for LandScout.

This module provides centralized configuration management using pydantic-settings:
browser session settings, pacing delays, cache TTLs and the batch target list are
all overridable from environment variables or a .env file.
"""

from config.settings import GlobalConfig, get_config

__all__ = ["GlobalConfig", "get_config"]
