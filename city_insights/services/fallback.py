"""
Fallback Service

Builds degraded-but-useful responses whenever the normal inference path cannot
produce a trustworthy result. Every handler returns a FallbackResponse whose
fields are all populated; nothing here raises on bad input.

Tiers (best to worst):
- TIER_1_PARTIAL_DATA: completeness >= 50%, existing scores are reused
- TIER_2_METADATA_ONLY: only name/country/population are usable
- TIER_3_SAFE_DEFAULT: nothing usable, generic data-free content

Handlers:
- handle_incomplete_data: quality check failed or completeness too low
- handle_low_confidence: inference succeeded but confidence is low
- handle_api_unavailable: upstream sources were reported down
- handle_inference_error: unexpected exception; details are logged, never shown
- handle_guard_blocked: the guard found suspicious scores, which are not reused
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from city_insights.models.enums import (
    DataAvailability,
    Dimension,
    FallbackReason,
    FallbackTier,
)
from city_insights.models.schemas import (
    CityIdentifier,
    ConfidenceResult,
    FallbackResponse,
    FeatureBundle,
    GuardResult,
    InferenceInsights,
    QualityResult,
)
from city_insights.services.inference_rules import format_score, truncate_text


logger = logging.getLogger(__name__)


# =============================================================================
# Thresholds and Confidence Levels (0-100)
# =============================================================================

PARTIAL_DATA_COMPLETENESS_THRESHOLD = 50.0
METADATA_ONLY_CONFIDENCE = 15.0
API_UNAVAILABLE_CONFIDENCE = 30.0
SAFE_DEFAULT_CONFIDENCE = 0.0

STRONG_SCORE = 60.0
WEAK_SCORE = 40.0
WEAK_FACTOR_THRESHOLD = 70.0
LARGE_CITY_POPULATION = 1_000_000
SMALL_CITY_POPULATION = 100_000


# =============================================================================
# Content
# =============================================================================

SAFE_DEFAULT_STRENGTHS = [
    "Every city has its own story to tell",
    "Explore this city's unique characteristics",
]
SAFE_DEFAULT_AUDIENCE = ["Curious travelers", "Urban explorers"]

PARTIAL_STRENGTHS: Dict[Dimension, str] = {
    Dimension.ECONOMY: "Economic indicators show positive trends",
    Dimension.LIVABILITY: "Livability metrics are favorable",
    Dimension.SUSTAINABILITY: "Environmental indicators are encouraging",
    Dimension.GROWTH: "Shows signs of growth and development",
}
PARTIAL_WEAKNESSES: Dict[Dimension, str] = {
    Dimension.ECONOMY: "Economic indicators point to challenges",
    Dimension.LIVABILITY: "Livability metrics trail comparable cities",
    Dimension.SUSTAINABILITY: "Environmental indicators need improvement",
    Dimension.GROWTH: "Growth indicators are subdued",
}
PARTIAL_AUDIENCE: Dict[Dimension, str] = {
    Dimension.ECONOMY: "Career-focused professionals",
    Dimension.LIVABILITY: "Families",
    Dimension.SUSTAINABILITY: "Environmentally conscious residents",
    Dimension.GROWTH: "Entrepreneurs and startup founders",
}

MSG_PARTIAL_DATA = "Showing a preliminary profile based on partial data."
MSG_METADATA_ONLY = "Detailed data for this city is not available yet. Showing basic information only."
MSG_SAFE_DEFAULT = "Detailed information for this city is not available yet."
MSG_LOW_CONFIDENCE = "These insights are preliminary and may change as more data becomes available."
MSG_API_UNAVAILABLE = (
    "Some live data sources are temporarily unavailable. "
    "Please try again later for the latest information."
)
MSG_INFERENCE_ERROR = "We couldn't generate insights for this city right now. Please try again later."
MSG_GUARD_BLOCKED = "Some of this city's data looks inconsistent, so only basic information is shown."


# =============================================================================
# Helpers
# =============================================================================


def _resolve_city(city: Optional[CityIdentifier], bundle: Optional[FeatureBundle]) -> Optional[CityIdentifier]:
    if city is not None:
        return city
    if bundle is not None:
        return bundle.cityIdentifier
    return None


def _evidence(city: Optional[CityIdentifier], bundle: Optional[FeatureBundle]) -> Optional[CityIdentifier]:
    """Identifier the tier is decided from: the bundle's own, when there is a bundle."""
    if bundle is not None:
        return bundle.cityIdentifier
    return city


def _name(city: Optional[CityIdentifier]) -> Optional[str]:
    if city is None or not city.name:
        return None
    return city.name


def _location(city: Optional[CityIdentifier]) -> str:
    name = _name(city) or "This city"
    if city is not None and city.country:
        return f"{name}, {city.country}"
    return name


def _slug(city: Optional[CityIdentifier]) -> str:
    if city is not None and city.slug:
        return city.slug
    return _name(city) or "unknown"


def _format_population(population: int) -> str:
    if population >= 1_000_000:
        return f"{population / 1_000_000:.1f} million"
    if population >= 1_000:
        return f"{population / 1_000:.0f} thousand"
    return f"{population:,}"


def _metadata_strengths(city: Optional[CityIdentifier]) -> List[str]:
    """Generic, verifiable statements built only from identifier data."""
    strengths: List[str] = []
    if city is not None and city.population is not None and city.population > 0:
        population = city.population
        if population >= LARGE_CITY_POPULATION:
            strengths.append(f"Major metropolitan area of about {_format_population(population)} residents")
        elif population >= SMALL_CITY_POPULATION:
            strengths.append(f"Established city of about {_format_population(population)} residents")
        else:
            strengths.append(f"Smaller city of about {_format_population(population)} residents with a close-knit feel")
    if city is not None and city.country:
        strengths.append(f"Located in {city.country}")
    return strengths or list(SAFE_DEFAULT_STRENGTHS)


def _finite_scores(bundle: Optional[FeatureBundle]) -> Dict[Dimension, Optional[float]]:
    if bundle is None:
        return {dimension: None for dimension in Dimension}
    return {
        d: (s if s is not None and math.isfinite(s) else None)
        for d, s in bundle.dimension_scores().items()
    }


def _dimension_availability(
    bundle: Optional[FeatureBundle],
    scores: Dict[Dimension, Optional[float]],
) -> Dict[str, str]:
    """available: scored; partial: group present but unscored; unavailable: no group."""
    groups = bundle.feature_groups() if bundle is not None else {}
    availability: Dict[str, str] = {}
    for dimension, score in scores.items():
        if score is not None:
            status = DataAvailability.AVAILABLE
        elif groups.get(dimension) is not None:
            status = DataAvailability.PARTIAL
        else:
            status = DataAvailability.UNAVAILABLE
        availability[dimension.value] = status.value
    return availability


def _unavailable_dimensions() -> Dict[str, str]:
    return {d.value: DataAvailability.UNAVAILABLE.value for d in Dimension}


def _log_fallback(response: FallbackResponse, city: Optional[CityIdentifier]) -> FallbackResponse:
    logger.warning(
        f"Fallback for {_slug(city)}: reason={response.reason.value}, "
        f"tier={response.tier.value}, confidence={response.confidence:.1f}"
    )
    return response


def _metadata_only_response(
    city: Optional[CityIdentifier],
    reason: FallbackReason,
    caveats: List[str],
    user_message: str,
    confidence: float = METADATA_ONLY_CONFIDENCE,
    data_availability: Optional[Dict[str, str]] = None,
) -> FallbackResponse:
    location = _location(city)
    availability = _unavailable_dimensions()
    availability["metadata"] = DataAvailability.AVAILABLE.value
    if data_availability:
        availability.update(data_availability)
    return FallbackResponse(
        tier=FallbackTier.TIER_2_METADATA_ONLY,
        reason=reason,
        personality=f"{location} is a city with its own character; a detailed profile is not available yet.",
        strengths=_metadata_strengths(city),
        weaknesses=[],
        audienceSegments=list(SAFE_DEFAULT_AUDIENCE),
        confidence=confidence,
        caveats=caveats,
        dataAvailability=availability,
        userMessage=user_message,
    )


def _safe_default_response(
    city: Optional[CityIdentifier],
    reason: FallbackReason,
    caveats: List[str],
    user_message: str,
    data_availability: Optional[Dict[str, str]] = None,
) -> FallbackResponse:
    name = _name(city)
    if name:
        personality = f"Every city has its own story to tell, and {name} is no exception."
    else:
        personality = "Every city has its own story to tell; details about this one are not available yet."
    availability = _unavailable_dimensions()
    if data_availability:
        availability.update(data_availability)
    return FallbackResponse(
        tier=FallbackTier.TIER_3_SAFE_DEFAULT,
        reason=reason,
        personality=personality,
        strengths=list(SAFE_DEFAULT_STRENGTHS),
        weaknesses=[],
        audienceSegments=list(SAFE_DEFAULT_AUDIENCE),
        confidence=SAFE_DEFAULT_CONFIDENCE,
        caveats=caveats,
        dataAvailability=availability,
        userMessage=user_message,
    )


def _partial_data_response(
    city: Optional[CityIdentifier],
    bundle: Optional[FeatureBundle],
    quality: QualityResult,
) -> FallbackResponse:
    scores = _finite_scores(bundle)
    present = [d for d, s in scores.items() if s is not None]
    missing = [d for d, s in scores.items() if s is None]

    strengths = [PARTIAL_STRENGTHS[d] for d in present if scores[d] >= STRONG_SCORE]
    if not strengths:
        strengths = _metadata_strengths(city)
    weaknesses = [PARTIAL_WEAKNESSES[d] for d in present if scores[d] < WEAK_SCORE]

    audience = [PARTIAL_AUDIENCE[d] for d in present if scores[d] >= STRONG_SCORE]
    for segment in SAFE_DEFAULT_AUDIENCE:
        if len(audience) >= 2:
            break
        if segment not in audience:
            audience.append(segment)

    location = _location(city)
    if present:
        measured = ", ".join(d.value for d in present)
        personality = (
            f"{location} shows measurable characteristics in {measured}, "
            f"though a complete profile is not yet available."
        )
    else:
        personality = f"{location} is still being profiled; only partial data is available."

    caveats = [f"Based on partial data ({quality.completenessPercentage:.0f}% complete)"]
    if missing:
        caveats.append(f"No scores available for: {', '.join(d.value for d in missing)}")
    if quality.issues:
        caveats.append("Some inputs failed validation and were not relied upon")

    return FallbackResponse(
        tier=FallbackTier.TIER_1_PARTIAL_DATA,
        reason=FallbackReason.INCOMPLETE_DATA,
        personality=truncate_text(personality),
        strengths=strengths,
        weaknesses=weaknesses,
        audienceSegments=audience,
        confidence=min(100.0, max(PARTIAL_DATA_COMPLETENESS_THRESHOLD, quality.completenessPercentage)),
        caveats=caveats,
        dataAvailability=_dimension_availability(bundle, scores),
        userMessage=MSG_PARTIAL_DATA,
    )


# =============================================================================
# Handlers
# =============================================================================


def handle_incomplete_data(
    city: Optional[CityIdentifier],
    bundle: Optional[FeatureBundle],
    quality: QualityResult,
    partial_data_threshold: float = PARTIAL_DATA_COMPLETENESS_THRESHOLD,
) -> FallbackResponse:
    """
    Respond to data that failed the quality check or is too incomplete.

    Args:
        city: City metadata; taken from the bundle when None
        bundle: The feature bundle that was checked (may be None)
        quality: Quality Checker result
        partial_data_threshold: Completeness at or above which scores are reused

    Returns:
        TIER_1 when completeness >= threshold, TIER_2 when the bundle itself
        names the city, TIER_3 otherwise
    """
    named = _name(_evidence(city, bundle)) is not None
    city = _resolve_city(city, bundle)

    if quality.completenessPercentage >= partial_data_threshold:
        response = _partial_data_response(city, bundle, quality)
    elif named:
        response = _metadata_only_response(
            city,
            FallbackReason.INCOMPLETE_DATA,
            caveats=[
                "Only basic city information is available",
                "Scores and detailed insights could not be computed",
            ],
            user_message=MSG_METADATA_ONLY,
        )
    else:
        response = _safe_default_response(
            city,
            FallbackReason.INCOMPLETE_DATA,
            caveats=["No usable data is available for this city yet"],
            user_message=MSG_SAFE_DEFAULT,
        )
    return _log_fallback(response, city)


def handle_low_confidence(
    city: Optional[CityIdentifier],
    insights: InferenceInsights,
    confidence: ConfidenceResult,
) -> FallbackResponse:
    """
    Keep a low-confidence inference but mark it as preliminary.

    Strengths, weaknesses and audience segments pass through unchanged.
    """
    caveats = [f"Preliminary result: confidence is {format_score(confidence.overallConfidence)}/100"]
    breakdown = confidence.breakdown
    if breakdown.dataCompleteness < WEAK_FACTOR_THRESHOLD:
        caveats.append(f"Limited data completeness ({breakdown.dataCompleteness:.0f}%)")
    if breakdown.patternReliability < WEAK_FACTOR_THRESHOLD:
        caveats.append("Dimension scores are sparse or inconsistent")
    if breakdown.inferenceStrength < WEAK_FACTOR_THRESHOLD:
        caveats.append("Scores sit close to neutral, so the signal is weak")

    availability = {
        key: (DataAvailability.AVAILABLE.value if score is not None else DataAvailability.UNAVAILABLE.value)
        for key, score in insights.dimensionScores.items()
    }

    response = FallbackResponse(
        tier=FallbackTier.TIER_1_PARTIAL_DATA,
        reason=FallbackReason.LOW_CONFIDENCE,
        personality=truncate_text(f"Preliminary assessment: {insights.personality}"),
        strengths=list(insights.strengths),
        weaknesses=list(insights.weaknesses),
        audienceSegments=list(insights.audienceSegments),
        confidence=confidence.overallConfidence,
        caveats=caveats,
        dataAvailability=availability,
        userMessage=MSG_LOW_CONFIDENCE,
    )
    return _log_fallback(response, city)


def handle_api_unavailable(
    city: Optional[CityIdentifier],
    unavailable_sources: Optional[Sequence[str]],
) -> FallbackResponse:
    """
    Respond when upstream data sources could not be reached.

    Each named source is marked "unavailable" in dataAvailability.
    """
    sources = list(dict.fromkeys(unavailable_sources or []))
    source_availability = {source: DataAvailability.UNAVAILABLE.value for source in sources}

    if sources:
        first_caveat = f"Some data sources are temporarily unavailable: {', '.join(sources)}"
    else:
        first_caveat = "Some data sources are temporarily unavailable"
    caveats = [first_caveat, "Information may not reflect current conditions"]

    if _name(city) is not None:
        response = _metadata_only_response(
            city,
            FallbackReason.API_UNAVAILABLE,
            caveats=caveats,
            user_message=MSG_API_UNAVAILABLE,
            confidence=API_UNAVAILABLE_CONFIDENCE,
            data_availability=source_availability,
        )
    else:
        response = _safe_default_response(
            city,
            FallbackReason.API_UNAVAILABLE,
            caveats=caveats,
            user_message=MSG_API_UNAVAILABLE,
            data_availability=source_availability,
        )
    return _log_fallback(response, city)


def handle_inference_error(city: Optional[CityIdentifier], error: BaseException) -> FallbackResponse:
    """
    Respond to an unexpected failure inside the pipeline.

    The error is logged with its traceback; no part of it reaches the response.
    """
    logger.error(
        f"Inference failed for {_slug(city)}: {type(error).__name__}",
        exc_info=(type(error), error, error.__traceback__),
    )
    response = _safe_default_response(
        city,
        FallbackReason.INFERENCE_ERROR,
        caveats=["Insights could not be generated due to a temporary problem"],
        user_message=MSG_INFERENCE_ERROR,
    )
    return _log_fallback(response, city)


def handle_guard_blocked(
    city: Optional[CityIdentifier],
    bundle: Optional[FeatureBundle],
    guard: GuardResult,
) -> FallbackResponse:
    """
    Respond when the guard blocked inference. Suspicious scores are not reused.
    """
    named = _name(_evidence(city, bundle)) is not None
    city = _resolve_city(city, bundle)
    caveats = ["Source scores failed a consistency check and were not used"]
    if named:
        response = _metadata_only_response(
            city,
            FallbackReason.QUALITY_GUARD_BLOCKED,
            caveats=caveats,
            user_message=MSG_GUARD_BLOCKED,
        )
    else:
        response = _safe_default_response(
            city,
            FallbackReason.QUALITY_GUARD_BLOCKED,
            caveats=caveats,
            user_message=MSG_GUARD_BLOCKED,
        )
    logger.debug(f"Guard blockers for {_slug(city)}: {guard.blockers}")
    return _log_fallback(response, city)
