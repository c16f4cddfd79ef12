"""
FastAPI dependency injection module for the City Insights service.

Endpoints never read configuration directly; they receive the cached
Settings instance through `SettingsDep`, which keeps handlers easy to test
with an explicit Settings object.

Usage:
    @router.post("/evaluate")
    async def evaluate_city(request: EvaluateRequest, settings: SettingsDep) -> InsightResult:
        ...
"""

from typing import Annotated

from fastapi import Depends

from city_insights.core.config import Settings, get_settings


def get_settings_dependency() -> Settings:
    """
    FastAPI dependency returning the application settings.

    Returns:
        Settings: The cached settings singleton.
    """
    return get_settings()


# Type alias for injecting Settings into endpoint handlers
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]
