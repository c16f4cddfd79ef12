"""
Insight Pipeline

Orchestrates the components into a single `evaluate` call:

    Quality Checker
        -> insufficient or too incomplete -> handle_incomplete_data
           (handle_api_unavailable if sources were down and no score exists)
    Quality Guard
        -> blocked -> handle_guard_blocked
    Inference Rule Engine
    Confidence Calculator
        -> LOW level or below threshold -> handle_low_confidence
    Success

Stages produce a PipelineOutcome, which is either Success (rule-engine
insights plus their confidence) or Degraded (a fallback response). A single
function, `to_insight_result`, turns either into the caller-facing
InsightResult.

`evaluate`, `evaluate_bundle` and `evaluate_metrics` never raise: any
unexpected exception is caught at their boundary, logged, and converted into
an INFERENCE_ERROR fallback.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from pydantic import ValidationError
from pydantic_settings import SettingsError

from city_insights.core.config import Settings, get_settings
from city_insights.models.enums import ConfidenceLevel
from city_insights.models.schemas import (
    CityIdentifier,
    ConfidenceResult,
    DataQualityMetadata,
    EconomyFeatures,
    FallbackResponse,
    FeatureBundle,
    GrowthFeatures,
    InferenceInsights,
    InsightResult,
    LivabilityFeatures,
    QualityResult,
    RawCityMetrics,
    SustainabilityFeatures,
)
from city_insights.services.confidence import compute_confidence
from city_insights.services.decision_logger import log_inference
from city_insights.services.fallback import (
    handle_api_unavailable,
    handle_guard_blocked,
    handle_incomplete_data,
    handle_inference_error,
    handle_low_confidence,
)
from city_insights.services.feature_computer import build_feature_bundle
from city_insights.services.inference_rules import run_inference, validate_output
from city_insights.services.quality_checker import validate_data
from city_insights.services.quality_guard import validate_for_inference


logger = logging.getLogger(__name__)


# =============================================================================
# Outcome
# =============================================================================


@dataclass(frozen=True)
class Success:
    """Rule-engine insights that passed every gate."""
    insights: InferenceInsights
    confidence: ConfidenceResult
    quality: QualityResult


@dataclass(frozen=True)
class Degraded:
    """A fallback response produced instead of rule-engine insights."""
    fallback: FallbackResponse


PipelineOutcome = Union[Success, Degraded]


def to_insight_result(
    outcome: PipelineOutcome,
    city_slug: str,
    settings: Optional[Settings] = None,
    inference_time_ms: int = 0,
) -> InsightResult:
    """
    Convert a pipeline outcome into the caller-facing result.

    Args:
        outcome: Success or Degraded
        city_slug: Slug to report on the result
        settings: Provides the pipeline version tags
        inference_time_ms: Measured wall time, informational only

    Returns:
        InsightResult tagged with the rule or fallback pipeline version
    """
    settings = settings or get_settings()

    if isinstance(outcome, Degraded):
        result = outcome.fallback.to_inference_result(city_slug, settings.fallback_pipeline_version)
        return result.model_copy(update={"inferenceTimeMs": inference_time_ms})

    insights = outcome.insights
    valid, errors = validate_output(insights)
    return InsightResult(
        citySlug=city_slug or "unknown",
        personality=insights.personality,
        strengths=list(insights.strengths),
        weaknesses=list(insights.weaknesses),
        bestSuitedFor=list(insights.audienceSegments),
        confidence=round(outcome.confidence.overallConfidence / 100.0, 4),
        pipelineVersion=settings.rule_pipeline_version,
        valid=valid,
        inferenceTimeMs=inference_time_ms,
        validationErrors=errors,
    )


# =============================================================================
# Stages
# =============================================================================


def run_pipeline(
    bundle: FeatureBundle,
    unavailable_sources: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> PipelineOutcome:
    """
    Run the staged pipeline over a feature bundle.

    Exceptions raised by a stage propagate; `evaluate_bundle` is the boundary
    that converts them.

    Args:
        bundle: Feature bundle to evaluate
        unavailable_sources: Upstream sources reported down while assembling it
        settings: Routing thresholds

    Returns:
        Success or Degraded
    """
    settings = settings or get_settings()
    city = bundle.cityIdentifier

    quality = validate_data(bundle)
    if not quality.sufficient or quality.completenessPercentage < settings.min_completeness_percentage:
        has_scores = any(score is not None for score in bundle.dimension_scores().values())
        if unavailable_sources and not has_scores:
            return Degraded(handle_api_unavailable(city, unavailable_sources))
        return Degraded(handle_incomplete_data(
            city, bundle, quality, settings.partial_data_completeness_threshold
        ))

    guard = validate_for_inference(bundle)
    if not guard.proceed:
        return Degraded(handle_guard_blocked(city, bundle, guard))
    for recommendation in guard.recommendations:
        logger.info(f"Guard recommendation for {bundle.city_slug}: {recommendation}")

    insights = run_inference(bundle)
    confidence = compute_confidence(quality, insights)
    if (
        confidence.level == ConfidenceLevel.LOW
        or confidence.overallConfidence < settings.low_confidence_threshold
    ):
        return Degraded(handle_low_confidence(city, insights, confidence))

    return Success(insights=insights, confidence=confidence, quality=quality)


# =============================================================================
# Entry Points
# =============================================================================


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _slug_for(city: Optional[CityIdentifier]) -> str:
    if city is not None and city.slug:
        return city.slug
    return "unknown"


def _resolve_settings(settings: Optional[Settings]) -> Settings:
    """Explicit settings, else the cached ones, else built-in defaults if the environment is invalid."""
    if settings is not None:
        return settings
    try:
        return get_settings()
    except (ValidationError, SettingsError):
        logger.exception("Invalid settings in environment; evaluating with defaults")
        return Settings.model_construct()


def _evaluate_safely(
    city: Optional[CityIdentifier],
    build_bundle: Callable[[], FeatureBundle],
    unavailable_sources: Optional[Sequence[str]],
    settings: Optional[Settings],
) -> InsightResult:
    settings = _resolve_settings(settings)
    start = time.perf_counter()

    try:
        bundle = build_bundle()
        outcome = run_pipeline(bundle, unavailable_sources, settings)
        result = to_insight_result(outcome, bundle.city_slug, settings, _elapsed_ms(start))
        if isinstance(outcome, Success):
            log_inference(bundle, outcome.insights, outcome.quality, outcome.confidence, result)
    except Exception as e:
        outcome = Degraded(handle_inference_error(city, e))
        result = to_insight_result(outcome, _slug_for(city), settings, _elapsed_ms(start))

    logger.info(
        f"Evaluated {result.citySlug}: version={result.pipelineVersion}, "
        f"confidence={result.confidence:.2f} ({result.quality_tier()}), time={result.inferenceTimeMs}ms"
    )
    return result


def evaluate_bundle(
    bundle: Optional[FeatureBundle],
    unavailable_sources: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> InsightResult:
    """
    Evaluate an assembled feature bundle. Never raises.

    Args:
        bundle: Feature bundle; None is treated as empty
        unavailable_sources: Upstream sources reported down, if any
        settings: Overrides the cached settings

    Returns:
        InsightResult, either rule-based ("rule-1.0") or degraded ("fallback-1.0")
    """
    bundle = bundle if bundle is not None else FeatureBundle()
    return _evaluate_safely(bundle.cityIdentifier, lambda: bundle, unavailable_sources, settings)


def evaluate(
    city_identifier: Optional[CityIdentifier],
    economy_features: Optional[EconomyFeatures] = None,
    livability_features: Optional[LivabilityFeatures] = None,
    sustainability_features: Optional[SustainabilityFeatures] = None,
    growth_features: Optional[GrowthFeatures] = None,
    data_quality: Optional[DataQualityMetadata] = None,
    unavailable_sources: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> InsightResult:
    """
    Evaluate a city from its feature groups. Never raises.

    Every feature group is optional; missing groups degrade the result rather
    than failing the call.
    """
    def build() -> FeatureBundle:
        return FeatureBundle(
            cityIdentifier=city_identifier,
            economy=economy_features,
            livability=livability_features,
            sustainability=sustainability_features,
            growth=growth_features,
            dataQuality=data_quality,
        )

    return _evaluate_safely(city_identifier, build, unavailable_sources, settings)


def evaluate_metrics(
    city_identifier: Optional[CityIdentifier],
    metrics: Optional[RawCityMetrics],
    unavailable_sources: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> InsightResult:
    """
    Score raw metrics with the Feature Computer, then evaluate. Never raises.
    """
    metrics = metrics if metrics is not None else RawCityMetrics()
    return _evaluate_safely(
        city_identifier,
        lambda: build_feature_bundle(city_identifier, metrics),
        unavailable_sources,
        settings,
    )
