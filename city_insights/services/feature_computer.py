"""
Feature Computer Service

This module turns raw city metrics into explainable 0-100 dimension scores
(economy, livability, sustainability, growth) and a weighted overall score.

Normalisation:
- Linear min-max against fixed bounds, clamped to [0, 100]
- Population uses log10 scaling before min-max
- "Lower is better" inputs (unemployment, cost of living, AQI, population)
  are inverted: sub-score = 100 - normalised value

Scoring formulas:
- economy        = 0.40 x GDP + 0.60 x inv(unemployment)
- livability     = 0.35 x inv(cost of living) + 0.35 x inv(AQI) + 0.30 x inv(log population)
- sustainability = 1.00 x inv(AQI)
- growth         = 0.50 x population growth + 0.50 x GDP growth
- overall        = 0.30 x economy + 0.35 x livability + 0.20 x sustainability + 0.15 x growth

Missing data:
- A score whose inputs are ALL missing is None; nothing is fabricated.
- A score with SOME inputs missing renormalises over the weights that are
  available, and records the available share as its confidence.
- NaN/inf values and non-positive populations count as missing.

Every score carries a one-sentence explanation naming its two largest
contributing inputs by literal value, e.g.
"Low unemployment (4.2%) offset by moderate GDP ($85K)".
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from city_insights.models.enums import Dimension, ScoreTier
from city_insights.models.schemas import (
    CityIdentifier,
    ComputedScores,
    DataQualityMetadata,
    EconomyFeatures,
    FeatureBundle,
    GrowthFeatures,
    LivabilityFeatures,
    RawCityMetrics,
    ScoreComponent,
    ScoreResult,
    SustainabilityFeatures,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Normalisation Bounds
# Values outside the bounds clamp to 0 or 100.
# =============================================================================

GDP_PER_CAPITA_BOUNDS: Tuple[float, float] = (15_000.0, 150_000.0)
UNEMPLOYMENT_BOUNDS: Tuple[float, float] = (2.0, 15.0)
COST_OF_LIVING_BOUNDS: Tuple[float, float] = (70.0, 180.0)
AQI_BOUNDS: Tuple[float, float] = (0.0, 200.0)
POPULATION_BOUNDS: Tuple[float, float] = (50_000.0, 10_000_000.0)  # log10 scale
POPULATION_GROWTH_BOUNDS: Tuple[float, float] = (-2.0, 5.0)
GDP_GROWTH_BOUNDS: Tuple[float, float] = (-5.0, 10.0)


# =============================================================================
# Score Weights
# =============================================================================

@dataclass(frozen=True)
class ComponentSpec:
    """Static description of one weighted input to a dimension score."""
    input_name: str
    label: str
    weight: float
    bounds: Tuple[float, float]
    invert: bool = False
    log_scale: bool = False


SCORE_COMPONENTS: Dict[Dimension, Tuple[ComponentSpec, ...]] = {
    Dimension.ECONOMY: (
        ComponentSpec("gdpPerCapita", "GDP", 0.40, GDP_PER_CAPITA_BOUNDS),
        ComponentSpec("unemploymentRate", "unemployment", 0.60, UNEMPLOYMENT_BOUNDS, invert=True),
    ),
    Dimension.LIVABILITY: (
        ComponentSpec("costOfLivingIndex", "cost of living", 0.35, COST_OF_LIVING_BOUNDS, invert=True),
        ComponentSpec("aqiIndex", "air quality", 0.35, AQI_BOUNDS, invert=True),
        ComponentSpec("population", "population", 0.30, POPULATION_BOUNDS, invert=True, log_scale=True),
    ),
    Dimension.SUSTAINABILITY: (
        ComponentSpec("aqiIndex", "air quality", 1.00, AQI_BOUNDS, invert=True),
    ),
    Dimension.GROWTH: (
        ComponentSpec("populationGrowthRate", "population growth", 0.50, POPULATION_GROWTH_BOUNDS),
        ComponentSpec("gdpGrowthRate", "GDP growth", 0.50, GDP_GROWTH_BOUNDS),
    ),
}

# Must sum to exactly 1.0
OVERALL_WEIGHTS: Dict[Dimension, float] = {
    Dimension.ECONOMY: 0.30,
    Dimension.LIVABILITY: 0.35,
    Dimension.SUSTAINABILITY: 0.20,
    Dimension.GROWTH: 0.15,
}

# Tier cutoffs, checked in order
SCORE_TIER_THRESHOLDS: Tuple[Tuple[float, ScoreTier], ...] = (
    (80.0, ScoreTier.EXCELLENT),
    (60.0, ScoreTier.GOOD),
    (40.0, ScoreTier.AVERAGE),
    (20.0, ScoreTier.BELOW_AVERAGE),
)

# Sub-score bands used to describe an input in explanations
FAVOURABLE_SUBSCORE = 65.0
UNFAVOURABLE_SUBSCORE = 35.0

# (favourable, moderate, unfavourable) wording per input
INPUT_DESCRIPTORS: Dict[str, Tuple[str, str, str]] = {
    "gdpPerCapita": ("strong", "moderate", "weak"),
    "unemploymentRate": ("low", "moderate", "high"),
    "costOfLivingIndex": ("low", "moderate", "high"),
    "aqiIndex": ("good", "moderate", "poor"),
    "population": ("manageable", "sizeable", "very large"),
    "populationGrowthRate": ("rapid", "steady", "slow"),
    "gdpGrowthRate": ("rapid", "steady", "slow"),
}

RAW_INPUTS: Tuple[str, ...] = (
    "gdpPerCapita",
    "unemploymentRate",
    "costOfLivingIndex",
    "aqiIndex",
    "population",
    "populationGrowthRate",
    "gdpGrowthRate",
)


# =============================================================================
# Normalisation Helpers
# =============================================================================


def normalize(value: float, lower: float, upper: float) -> float:
    """
    Min-max normalise a value to the 0-100 scale, clamped.

    Args:
        value: Raw value
        lower: Value mapped to 0
        upper: Value mapped to 100

    Returns:
        Normalised value in [0, 100]
    """
    scaled = (value - lower) / (upper - lower) * 100.0
    return float(np.clip(scaled, 0.0, 100.0))


def log_normalize(value: float, lower: float, upper: float) -> float:
    """Min-max normalise on a log10 scale. `value` must be positive."""
    return normalize(float(np.log10(value)), float(np.log10(lower)), float(np.log10(upper)))


def invert(normalized: float) -> float:
    """Turn a "lower is better" normalised value into a sub-score."""
    return 100.0 - normalized


def score_tier(score: Optional[float]) -> ScoreTier:
    """Map a 0-100 score to its qualitative tier."""
    if score is None:
        return ScoreTier.UNAVAILABLE
    for threshold, tier in SCORE_TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return ScoreTier.POOR


def _is_usable(input_name: str, value: Optional[float]) -> bool:
    if value is None:
        return False
    if not math.isfinite(value):
        return False
    if input_name == "population" and value <= 0:
        return False
    return True


def format_input_value(input_name: str, value: float) -> str:
    """
    Render a raw input the way it appears in explanations.

    Examples: $85K, 4.2%, index 125, AQI 42, 8.5M residents, +1.2%
    """
    if input_name == "gdpPerCapita":
        if abs(value) >= 1000:
            return f"${value / 1000:.0f}K"
        return f"${value:,.0f}"
    if input_name == "unemploymentRate":
        return f"{value:.1f}%"
    if input_name in ("populationGrowthRate", "gdpGrowthRate"):
        return f"{value:+.1f}%"
    if input_name == "costOfLivingIndex":
        return f"index {value:.0f}"
    if input_name == "aqiIndex":
        return f"AQI {value:.0f}"
    if input_name == "population":
        if value >= 1_000_000:
            return f"{value / 1_000_000:.1f}M residents"
        if value >= 1_000:
            return f"{value / 1_000:.0f}K residents"
        return f"{value:,.0f} residents"
    return f"{value:g}"


def _describe(component: ScoreComponent) -> Tuple[int, str]:
    """Return (band, word) where band 0 is favourable and 2 unfavourable."""
    words = INPUT_DESCRIPTORS.get(component.inputName, ("strong", "moderate", "weak"))
    if component.normalizedValue >= FAVOURABLE_SUBSCORE:
        return 0, words[0]
    if component.normalizedValue >= UNFAVOURABLE_SUBSCORE:
        return 1, words[1]
    return 2, words[2]


def build_explanation(components: List[ScoreComponent]) -> str:
    """
    Build a one-sentence explanation from the two largest contributors.

    Ties keep declaration order, so the sentence is deterministic.
    """
    if not components:
        return ""
    ranked = sorted(components, key=lambda c: c.contribution, reverse=True)[:2]

    first_band, first_word = _describe(ranked[0])
    sentence = f"{first_word.capitalize()} {ranked[0].label} ({ranked[0].displayValue})"
    if len(ranked) == 1:
        return sentence

    second_band, second_word = _describe(ranked[1])
    if second_band == first_band:
        connector = "and"
    elif second_band > first_band:
        connector = "offset by"
    else:
        connector = "with"
    return f"{sentence} {connector} {second_word} {ranked[1].label} ({ranked[1].displayValue})"


# =============================================================================
# Dimension Scores
# =============================================================================


def compute_dimension_score(dimension: Dimension, metrics: RawCityMetrics) -> ScoreResult:
    """
    Compute one dimension score from raw metrics.

    Args:
        dimension: Which dimension to score
        metrics: Raw input values

    Returns:
        ScoreResult; score is None when every input for the dimension is missing
    """
    specs = SCORE_COMPONENTS[dimension]
    total_weight = sum(spec.weight for spec in specs)

    available: List[Tuple[ComponentSpec, float]] = []
    missing: List[str] = []
    for spec in specs:
        value = getattr(metrics, spec.input_name)
        if _is_usable(spec.input_name, value):
            available.append((spec, float(value)))
        else:
            missing.append(spec.input_name)

    if not available:
        return ScoreResult(
            score=None,
            tier=ScoreTier.UNAVAILABLE,
            explanation=f"{dimension.value.capitalize()} score unavailable: missing {', '.join(missing)}",
            missingData=missing,
            confidence=0.0,
        )

    available_weight = sum(spec.weight for spec, _ in available)
    components: List[ScoreComponent] = []
    raw_score = 0.0
    for spec, value in available:
        lower, upper = spec.bounds
        normalized = log_normalize(value, lower, upper) if spec.log_scale else normalize(value, lower, upper)
        sub_score = invert(normalized) if spec.invert else normalized
        weight = spec.weight / available_weight
        raw_score += sub_score * weight
        components.append(ScoreComponent(
            inputName=spec.input_name,
            label=spec.label,
            rawValue=value,
            displayValue=format_input_value(spec.input_name, value),
            normalizedValue=round(sub_score, 2),
            weight=round(weight, 4),
            contribution=round(sub_score * weight, 2),
        ))

    score = round(float(np.clip(raw_score, 0.0, 100.0)), 1)

    return ScoreResult(
        score=score,
        tier=score_tier(score),
        explanation=build_explanation(components),
        components=components,
        missingData=missing,
        confidence=round(available_weight / total_weight, 4),
    )


def compute_overall_score(dimension_scores: Dict[Dimension, Optional[float]]) -> ScoreResult:
    """
    Weighted blend of the dimension scores, renormalised over those present.

    Returns a ScoreResult with score None when no dimension score exists.
    """
    present = [(d, s) for d, s in dimension_scores.items() if s is not None]
    missing = [d.value for d, s in dimension_scores.items() if s is None]
    if not present:
        return ScoreResult(
            score=None,
            explanation="Overall score unavailable: no dimension scores",
            missingData=missing,
        )

    available_weight = sum(OVERALL_WEIGHTS[d] for d, _ in present)
    score = sum(s * OVERALL_WEIGHTS[d] for d, s in present) / available_weight
    score = round(float(np.clip(score, 0.0, 100.0)), 1)

    ranked = sorted(present, key=lambda item: item[1] * OVERALL_WEIGHTS[item[0]], reverse=True)[:2]
    led_by = " and ".join(f"{d.value} ({s:.0f}/100)" for d, s in ranked)
    tier = score_tier(score)

    return ScoreResult(
        score=score,
        tier=tier,
        explanation=f"{tier.value.capitalize()} overall profile led by {led_by}",
        missingData=missing,
        confidence=round(available_weight, 4),
    )


def compute_scores(metrics: RawCityMetrics) -> ComputedScores:
    """
    Compute all dimension scores plus the overall score.

    Args:
        metrics: Raw city metrics; any field may be missing

    Returns:
        ComputedScores with per-dimension details and one explanation per score
    """
    details: Dict[str, ScoreResult] = {}
    dimension_scores: Dict[Dimension, Optional[float]] = {}
    for dimension in Dimension:
        result = compute_dimension_score(dimension, metrics)
        details[dimension.value] = result
        dimension_scores[dimension] = result.score

    overall = compute_overall_score(dimension_scores)
    details["overall"] = overall

    present_inputs = sum(1 for name in RAW_INPUTS if _is_usable(name, getattr(metrics, name)))
    completeness = round(present_inputs / len(RAW_INPUTS) * 100.0, 1)

    logger.debug(
        f"Computed scores: economy={dimension_scores[Dimension.ECONOMY]}, "
        f"livability={dimension_scores[Dimension.LIVABILITY]}, "
        f"sustainability={dimension_scores[Dimension.SUSTAINABILITY]}, "
        f"growth={dimension_scores[Dimension.GROWTH]}, overall={overall.score}"
    )

    return ComputedScores(
        economyScore=dimension_scores[Dimension.ECONOMY],
        livabilityScore=dimension_scores[Dimension.LIVABILITY],
        sustainabilityScore=dimension_scores[Dimension.SUSTAINABILITY],
        growthScore=dimension_scores[Dimension.GROWTH],
        overallScore=overall.score,
        explanations={key: result.explanation for key, result in details.items()},
        details=details,
        dataCompleteness=completeness,
    )


# =============================================================================
# Classification Helpers
# =============================================================================


def classify_air_quality(aqi: Optional[float]) -> Optional[str]:
    """US EPA style AQI category."""
    if not _is_usable("aqiIndex", aqi):
        return None
    if aqi <= 50:
        return "Good"
    if aqi <= 100:
        return "Moderate"
    if aqi <= 150:
        return "Unhealthy for Sensitive Groups"
    if aqi <= 200:
        return "Unhealthy"
    if aqi <= 300:
        return "Very Unhealthy"
    return "Hazardous"


def classify_city_size(population: Optional[int]) -> Optional[str]:
    if not _is_usable("population", population):
        return None
    if population < 100_000:
        return "small"
    if population < 1_000_000:
        return "medium"
    if population < 5_000_000:
        return "large"
    return "metropolis"


# =============================================================================
# Feature Bundle Assembly
# =============================================================================


def build_feature_bundle(
    identifier: Optional[CityIdentifier],
    metrics: RawCityMetrics,
) -> FeatureBundle:
    """
    Score raw metrics and assemble the feature bundle the pipeline consumes.

    Population is shared between the identifier and the metrics: whichever
    side is missing it borrows from the other.

    Args:
        identifier: City metadata (may be None)
        metrics: Raw metric values

    Returns:
        FeatureBundle with scores, tiers, explanations and data quality metadata
    """
    if metrics.population is None and identifier is not None and identifier.population is not None:
        metrics = metrics.model_copy(update={"population": identifier.population})
    if identifier is not None:
        updates = {}
        if identifier.population is None and metrics.population is not None:
            updates["population"] = metrics.population
        if identifier.sizeCategory is None:
            size = classify_city_size(updates.get("population", identifier.population))
            if size is not None:
                updates["sizeCategory"] = size
        if updates:
            identifier = identifier.model_copy(update=updates)

    scores = compute_scores(metrics)
    economy = scores.details[Dimension.ECONOMY.value]
    livability = scores.details[Dimension.LIVABILITY.value]
    sustainability = scores.details[Dimension.SUSTAINABILITY.value]
    growth = scores.details[Dimension.GROWTH.value]

    def _tier(result: ScoreResult) -> Optional[ScoreTier]:
        return result.tier if result.is_available else None

    def _explanation(result: ScoreResult) -> Optional[str]:
        return result.explanation if result.is_available else None

    missing_fields = [name for name in RAW_INPUTS if not _is_usable(name, getattr(metrics, name))]

    return FeatureBundle(
        cityIdentifier=identifier,
        economy=EconomyFeatures(
            gdpPerCapita=metrics.gdpPerCapita,
            unemploymentRate=metrics.unemploymentRate,
            costOfLivingIndex=metrics.costOfLivingIndex,
            economyScore=economy.score,
            economyTier=_tier(economy),
            explanation=_explanation(economy),
            components=economy.components,
        ),
        livability=LivabilityFeatures(
            aqiIndex=metrics.aqiIndex,
            costOfLivingIndex=metrics.costOfLivingIndex,
            population=metrics.population,
            livabilityScore=livability.score,
            livabilityTier=_tier(livability),
            explanation=_explanation(livability),
            components=livability.components,
        ),
        sustainability=SustainabilityFeatures(
            aqiIndex=metrics.aqiIndex,
            aqiCategory=classify_air_quality(metrics.aqiIndex),
            sustainabilityScore=sustainability.score,
            sustainabilityTier=_tier(sustainability),
            explanation=_explanation(sustainability),
            components=sustainability.components,
        ),
        growth=GrowthFeatures(
            populationGrowthRate=metrics.populationGrowthRate,
            gdpGrowthRate=metrics.gdpGrowthRate,
            growthScore=growth.score,
            growthTier=_tier(growth),
            explanation=_explanation(growth),
            components=growth.components,
        ),
        dataQuality=DataQualityMetadata(
            completenessPercentage=scores.dataCompleteness,
            missingFields=missing_fields,
        ),
    )
