"""
Settings and environment management module for the City Insights service.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development
- Singleton pattern via @lru_cache for efficient access
- Pipeline routing thresholds (completeness gate, low-confidence gate)

Environment Variables:
- APP_NAME: Display name used by the API root endpoint (default: City Insights API)
- LOG_LEVEL: Root logging level (default: INFO)
- CORS_ORIGINS: Allowed CORS origins for the presentation layer
- RULE_PIPELINE_VERSION: Version tag carried by rule-based results (default: rule-1.0)
- FALLBACK_PIPELINE_VERSION: Version tag carried by degraded results (default: fallback-1.0)
- LOW_CONFIDENCE_THRESHOLD: Overall confidence below which results are degraded (default: 60,
  the lower edge of the MEDIUM band, so every LOW result is degraded)
- MIN_COMPLETENESS_PERCENTAGE: Completeness below which inference is skipped (default: 30)
- PARTIAL_DATA_COMPLETENESS_THRESHOLD: Completeness at or above which a partial-data
  response reuses existing scores (default: 50)

Scoring weights and inference thresholds are deliberately not settings: they live
as module constants next to the rules that use them so that scoring and inference
remain pure functions of their input.

Usage:
    from city_insights.core.config import get_settings

    settings = get_settings()
    threshold = settings.low_confidence_threshold
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name of the service.
        app_version: Version string reported by the API.
        log_level: Root logging level name.
        cors_origins: Origins allowed to call the API from a browser.
        rule_pipeline_version: Version tag for results produced by the rule engine.
        fallback_pipeline_version: Version tag for results produced by the fallback service.
        low_confidence_threshold: Overall confidence (0-100) below which a
            rule-based result is replaced by a preliminary, caveated one. A LOW
            confidence level is always replaced, whatever this is set to.
        min_completeness_percentage: Completeness (0-100) below which the
            pipeline does not attempt inference at all.
        partial_data_completeness_threshold: Completeness (0-100) at or above
            which incomplete data still reuses the scores that are present.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',  # Ignore extra environment variables not defined in this class
        case_sensitive=False,
    )

    # =========================================================================
    # Service
    # =========================================================================

    app_name: str = 'City Insights API'
    app_version: str = '1.0.0'
    log_level: str = 'INFO'

    # Next.js dev server by default
    cors_origins: List[str] = ['http://localhost:3000']

    # =========================================================================
    # Pipeline Versioning
    # Consumers tell rule-based results from degraded ones by this tag only.
    # =========================================================================

    rule_pipeline_version: str = 'rule-1.0'
    fallback_pipeline_version: str = 'fallback-1.0'

    # =========================================================================
    # Routing Thresholds (percentages, 0-100)
    # =========================================================================

    low_confidence_threshold: float = 60.0
    min_completeness_percentage: float = 30.0
    partial_data_completeness_threshold: float = 50.0


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached application settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
