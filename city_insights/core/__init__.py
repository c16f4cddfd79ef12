"""
Core infrastructure package for the City Insights service.

Provides:
- Configuration management via pydantic-settings
- FastAPI dependency injection utilities

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    get_settings: Function returning the cached Settings singleton
    get_settings_dependency: FastAPI dependency returning Settings
    SettingsDep: Type alias for Settings dependency injection

Usage:
    from city_insights.core import get_settings, SettingsDep
"""

from city_insights.core.config import Settings, get_settings
from city_insights.core.dependencies import SettingsDep, get_settings_dependency

__all__ = [
    "Settings",
    "get_settings",
    "get_settings_dependency",
    "SettingsDep",
]
