"""
Configuration System

Configuration Priority (highest to lowest):
    1. Programmatic (passed to DendriteConfig())
    2. Environment variables (DENDRITE_* prefix, OPENAI_API_KEY)
    3. Built-in defaults

Config files are loaded explicitly with DendriteConfig.from_file().

Modules:
    settings: DendriteConfig class
"""

from dendrite.config.settings import DendriteConfig

__all__ = ["DendriteConfig"]
