"""
Pytest Configuration and Shared Fixtures for City Insights Tests.

This module provides fixtures and configuration for all tests, supporting:
- Async endpoint tests with pytest-asyncio
- Explicit Settings instances so tests never depend on the environment
- Feature bundle builders covering complete, partial, suspicious and empty input
- Raw metric samples for the Feature Computer

Dependencies:
- pytest
- pytest-asyncio
"""

from typing import Callable, Optional

import pytest

from city_insights.core.config import Settings
from city_insights.models import (
    CityIdentifier,
    DataQualityMetadata,
    EconomyFeatures,
    FeatureBundle,
    GrowthFeatures,
    LivabilityFeatures,
    RawCityMetrics,
    SustainabilityFeatures,
)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - scenario: end-to-end pipeline scenarios over realistic city data
    - api: tests that call the FastAPI route coroutines

    Usage:
        pytest -m scenario
        pytest -m "not api"
    """
    config.addinivalue_line(
        'markers',
        'scenario: end-to-end pipeline scenarios over realistic city data'
    )
    config.addinivalue_line(
        'markers',
        'api: tests that call FastAPI route handlers directly'
    )


# ============================================================
# SETTINGS
# ============================================================

@pytest.fixture
def settings() -> Settings:
    """Settings with the documented defaults, independent of any .env file."""
    return Settings(
        _env_file=None,
        rule_pipeline_version='rule-1.0',
        fallback_pipeline_version='fallback-1.0',
        low_confidence_threshold=60.0,
        min_completeness_percentage=30.0,
        partial_data_completeness_threshold=50.0,
    )


# ============================================================
# IDENTIFIERS
# ============================================================

@pytest.fixture
def amsterdam() -> CityIdentifier:
    return CityIdentifier(
        slug='amsterdam',
        name='Amsterdam',
        state='North Holland',
        country='Netherlands',
        population=872680,
        sizeCategory='medium',
    )


@pytest.fixture
def tokyo() -> CityIdentifier:
    return CityIdentifier(slug='tokyo', name='Tokyo', country='Japan', population=13960000)


# ============================================================
# FEATURE BUNDLES
# ============================================================

BundleFactory = Callable[..., FeatureBundle]


@pytest.fixture
def make_bundle() -> BundleFactory:
    """
    Factory building a feature bundle from dimension scores.

    Any score left as None omits the whole feature group, so
    `make_bundle(economy=70)` yields a bundle with only an economy group.

    Example:
        bundle = make_bundle(economy=85, livability=72, sustainability=65, growth=55)
    """
    def _make(
        economy: Optional[float] = None,
        livability: Optional[float] = None,
        sustainability: Optional[float] = None,
        growth: Optional[float] = None,
        name: Optional[str] = 'Testville',
        country: Optional[str] = 'Testland',
        slug: Optional[str] = 'testville',
        population: Optional[int] = 750000,
        gdp_per_capita: Optional[float] = 52000.0,
        unemployment_rate: Optional[float] = 4.5,
        cost_of_living: Optional[float] = 105.0,
        aqi: Optional[float] = 45.0,
        completeness: Optional[float] = None,
    ) -> FeatureBundle:
        return FeatureBundle(
            cityIdentifier=CityIdentifier(
                slug=slug, name=name, country=country, population=population
            ),
            economy=None if economy is None else EconomyFeatures(
                gdpPerCapita=gdp_per_capita,
                unemploymentRate=unemployment_rate,
                costOfLivingIndex=cost_of_living,
                economyScore=economy,
                explanation='Economy explanation',
            ),
            livability=None if livability is None else LivabilityFeatures(
                aqiIndex=aqi,
                costOfLivingIndex=cost_of_living,
                population=population,
                livabilityScore=livability,
                explanation='Livability explanation',
            ),
            sustainability=None if sustainability is None else SustainabilityFeatures(
                aqiIndex=aqi,
                aqiCategory='Good',
                sustainabilityScore=sustainability,
                explanation='Sustainability explanation',
            ),
            growth=None if growth is None else GrowthFeatures(
                populationGrowthRate=1.2,
                gdpGrowthRate=2.5,
                growthScore=growth,
                explanation='Growth explanation',
            ),
            dataQuality=None if completeness is None else DataQualityMetadata(
                completenessPercentage=completeness
            ),
        )

    return _make


@pytest.fixture
def complete_bundle(make_bundle: BundleFactory) -> FeatureBundle:
    """A well-populated bundle that should pass every gate."""
    return make_bundle(economy=72.0, livability=68.0, sustainability=81.0, growth=55.0)


@pytest.fixture
def identifier_only_bundle() -> FeatureBundle:
    return FeatureBundle(
        cityIdentifier=CityIdentifier(
            slug='tokyo', name='Tokyo', country='Japan', population=13960000
        )
    )


@pytest.fixture
def empty_bundle() -> FeatureBundle:
    return FeatureBundle()


# ============================================================
# RAW METRICS
# ============================================================

@pytest.fixture
def complete_metrics() -> RawCityMetrics:
    return RawCityMetrics(
        gdpPerCapita=85000,
        unemploymentRate=4.2,
        costOfLivingIndex=125,
        aqiIndex=42,
        population=872680,
        populationGrowthRate=0.8,
        gdpGrowthRate=2.1,
    )
