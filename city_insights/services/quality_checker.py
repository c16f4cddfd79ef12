"""
Data Quality Checker Service

Validates a feature bundle before anything is inferred from it and measures
how complete it is.

Issues (make the bundle insufficient):
- missing city name
- invalid population (negative)
- invalid GDP per capita (negative)
- invalid unemployment rate (outside 0-100)
- score out of range: <field> (any dimension score outside [0, 100], or NaN)

Warnings (informational only):
- missing population data
- missing <dimension> features / missing <dimension> score
- all scores are zero/identical (every present score is exactly 0)
- missing GDP per capita / missing unemployment rate

Completeness walks every leaf field of the identifier and the four feature
groups. A supplied `dataQuality.completenessPercentage` in [0, 100] takes
precedence because the collaborator that assembled the bundle measured it
against the real source data.

`sufficient` is true iff there are no issues. The checker never raises on
bad data; problems are reported in the result.
"""

import logging
import math
from typing import List, Optional, Tuple

from pydantic import BaseModel

from city_insights.models.enums import Dimension
from city_insights.models.schemas import (
    CityIdentifier,
    EconomyFeatures,
    FeatureBundle,
    GrowthFeatures,
    LivabilityFeatures,
    QualityResult,
    SustainabilityFeatures,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Messages
# =============================================================================

MISSING_CITY_NAME = "missing city name"
INVALID_POPULATION = "invalid population"
INVALID_GDP = "invalid GDP per capita"
INVALID_UNEMPLOYMENT = "invalid unemployment rate"
SCORE_OUT_OF_RANGE = "score out of range: {field}"

MISSING_POPULATION = "missing population data"
MISSING_GROUP = "missing {dimension} features"
MISSING_SCORE = "missing {dimension} score"
ALL_SCORES_ZERO = "all scores are zero/identical"
MISSING_GDP = "missing GDP per capita"
MISSING_UNEMPLOYMENT = "missing unemployment rate"
REPORTED_COMPLETENESS_INVALID = "reported completeness out of range; recomputed from fields"

SCORE_FIELDS = {
    Dimension.ECONOMY: "economyScore",
    Dimension.LIVABILITY: "livabilityScore",
    Dimension.SUSTAINABILITY: "sustainabilityScore",
    Dimension.GROWTH: "growthScore",
}

# Models walked for completeness, with the bundle attribute holding each
COMPLETENESS_GROUPS = (
    ("cityIdentifier", CityIdentifier),
    ("economy", EconomyFeatures),
    ("livability", LivabilityFeatures),
    ("sustainability", SustainabilityFeatures),
    ("growth", GrowthFeatures),
)


# =============================================================================
# Completeness
# =============================================================================


def _is_populated(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return len(value) > 0
    if isinstance(value, float):
        return not math.isnan(value)
    return True


def _count_leaves(model_cls: type, instance: Optional[BaseModel]) -> Tuple[int, int]:
    """Return (populated, expected) leaf counts for one group."""
    field_names = list(model_cls.model_fields)
    if instance is None:
        return 0, len(field_names)
    populated = sum(1 for name in field_names if _is_populated(getattr(instance, name)))
    return populated, len(field_names)


def calculate_completeness(bundle: FeatureBundle) -> float:
    """
    Percentage of expected leaf fields that are populated.

    Args:
        bundle: Feature bundle to measure

    Returns:
        Completeness in [0, 100], rounded to one decimal
    """
    populated_total = 0
    expected_total = 0
    for attribute, model_cls in COMPLETENESS_GROUPS:
        populated, expected = _count_leaves(model_cls, getattr(bundle, attribute))
        populated_total += populated
        expected_total += expected
    if expected_total == 0:
        return 0.0
    return round(populated_total / expected_total * 100.0, 1)


def _reported_completeness(bundle: FeatureBundle) -> Optional[float]:
    if bundle.dataQuality is None:
        return None
    return bundle.dataQuality.completenessPercentage


# =============================================================================
# Checks
# =============================================================================


def _check_identifier(bundle: FeatureBundle) -> Tuple[List[str], List[str]]:
    issues: List[str] = []
    warnings: List[str] = []

    if bundle.city_name is None:
        issues.append(MISSING_CITY_NAME)

    population = bundle.population
    if population is None:
        warnings.append(MISSING_POPULATION)
    elif population < 0:
        issues.append(INVALID_POPULATION)

    return issues, warnings


def _check_scores(bundle: FeatureBundle) -> Tuple[List[str], List[str]]:
    issues: List[str] = []
    warnings: List[str] = []

    for dimension, group in bundle.feature_groups().items():
        if group is None:
            warnings.append(MISSING_GROUP.format(dimension=dimension.value))
            continue
        score = group.score
        if score is None:
            warnings.append(MISSING_SCORE.format(dimension=dimension.value))
        elif not math.isfinite(score) or score < 0 or score > 100:
            issues.append(SCORE_OUT_OF_RANGE.format(field=SCORE_FIELDS[dimension]))

    present = [s for s in bundle.dimension_scores().values() if s is not None]
    if len(present) >= 2 and all(s == 0 for s in present):
        warnings.append(ALL_SCORES_ZERO)

    return issues, warnings


def _check_economy(bundle: FeatureBundle) -> Tuple[List[str], List[str]]:
    issues: List[str] = []
    warnings: List[str] = []
    economy = bundle.economy
    if economy is None:
        return issues, warnings

    if economy.gdpPerCapita is None:
        warnings.append(MISSING_GDP)
    elif economy.gdpPerCapita < 0:
        issues.append(INVALID_GDP)

    if economy.unemploymentRate is None:
        warnings.append(MISSING_UNEMPLOYMENT)
    elif economy.unemploymentRate < 0 or economy.unemploymentRate > 100:
        issues.append(INVALID_UNEMPLOYMENT)

    return issues, warnings


# =============================================================================
# Entry Point
# =============================================================================


def validate_data(bundle: Optional[FeatureBundle]) -> QualityResult:
    """
    Validate a feature bundle and measure its completeness.

    Args:
        bundle: Feature bundle to validate; None is treated as an empty bundle

    Returns:
        QualityResult with sufficient = (no issues)
    """
    if bundle is None:
        bundle = FeatureBundle()

    issues: List[str] = []
    warnings: List[str] = []
    for check in (_check_identifier, _check_scores, _check_economy):
        check_issues, check_warnings = check(bundle)
        issues.extend(check_issues)
        warnings.extend(check_warnings)

    completeness = calculate_completeness(bundle)
    reported = _reported_completeness(bundle)
    if reported is not None:
        if math.isfinite(reported) and 0 <= reported <= 100:
            completeness = round(reported, 1)
        else:
            warnings.append(REPORTED_COMPLETENESS_INVALID)

    result = QualityResult(
        sufficient=not issues,
        completenessPercentage=completeness,
        issues=issues,
        warnings=warnings,
    )
    logger.debug(f"Quality check for {bundle.city_name or 'unnamed city'}: {result.summary()}")
    return result
