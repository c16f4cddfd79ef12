"""
Pre-inference Quality Guard

Last check before the rule engine runs. The Quality Checker asks "is the data
well-formed?"; the guard asks "does the data look real?".

Blockers (inference must not proceed):
- all four dimension scores numerically identical, which is what a default-filled
  or placeholder record looks like

Recommendations (inference proceeds, output should be read with care):
- three or more scores exactly 100
- population missing
- population below 50,000
- GDP per capita below $5,000
- economy group present with neither GDP nor unemployment
"""

import logging
from typing import List, Optional

from city_insights.models.schemas import FeatureBundle, GuardResult


logger = logging.getLogger(__name__)


# =============================================================================
# Thresholds
# =============================================================================

PERFECT_SCORE = 100.0
MAX_PERFECT_SCORES = 2  # more than this is suspicious
SMALL_POPULATION_THRESHOLD = 50_000
LOW_GDP_PER_CAPITA_THRESHOLD = 5_000.0


# =============================================================================
# Messages
# =============================================================================

IDENTICAL_SCORES_BLOCKER = "identical scores across all dimensions: suspicious input"
PERFECT_SCORES_RECOMMENDATION = "multiple perfect scores detected: verify data accuracy"
MISSING_POPULATION_RECOMMENDATION = (
    "population data missing: tier/audience inference may be less precise"
)
SMALL_POPULATION_RECOMMENDATION = "small population: economic signal may be noisy"
LOW_GDP_RECOMMENDATION = (
    "GDP per capita below $5K: GDP-based economic interpretation may be limited"
)
NO_ECONOMIC_INDICATORS_RECOMMENDATION = (
    "no economic indicators (GDP, unemployment): economy score may be unreliable"
)


def _identical_scores(bundle: FeatureBundle) -> bool:
    scores = list(bundle.dimension_scores().values())
    if any(score is None for score in scores):
        return False
    return len(set(scores)) == 1


def _build_guidance(blockers: List[str], recommendations: List[str]) -> str:
    if blockers:
        return "Do not infer: " + "; ".join(blockers)
    if recommendations:
        return "Proceed with caution: " + "; ".join(recommendations)
    return "Data passed all pre-inference checks"


def validate_for_inference(bundle: Optional[FeatureBundle]) -> GuardResult:
    """
    Decide whether inference may run on a bundle.

    Args:
        bundle: Feature bundle that already passed the Quality Checker

    Returns:
        GuardResult; proceed is False iff there is at least one blocker
    """
    if bundle is None:
        bundle = FeatureBundle()

    blockers: List[str] = []
    recommendations: List[str] = []

    if _identical_scores(bundle):
        blockers.append(IDENTICAL_SCORES_BLOCKER)

    perfect = sum(1 for s in bundle.dimension_scores().values() if s == PERFECT_SCORE)
    if perfect > MAX_PERFECT_SCORES:
        recommendations.append(PERFECT_SCORES_RECOMMENDATION)

    population = bundle.population
    if population is None:
        recommendations.append(MISSING_POPULATION_RECOMMENDATION)
    elif population < SMALL_POPULATION_THRESHOLD:
        recommendations.append(SMALL_POPULATION_RECOMMENDATION)

    economy = bundle.economy
    if economy is not None:
        if economy.gdpPerCapita is not None and economy.gdpPerCapita < LOW_GDP_PER_CAPITA_THRESHOLD:
            recommendations.append(LOW_GDP_RECOMMENDATION)
        if economy.gdpPerCapita is None and economy.unemploymentRate is None:
            recommendations.append(NO_ECONOMIC_INDICATORS_RECOMMENDATION)

    result = GuardResult(
        proceed=not blockers,
        blockers=blockers,
        recommendations=recommendations,
        guidance=_build_guidance(blockers, recommendations),
    )

    if blockers:
        logger.warning(f"Quality guard blocked inference for {bundle.city_name or 'unnamed city'}: {blockers}")
    else:
        logger.debug(f"Quality guard: {result.summary()}")
    return result
