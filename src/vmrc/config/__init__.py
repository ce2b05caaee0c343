"""Configuration management for vmrc.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for connection details and the
vision model.
"""

from vmrc.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
