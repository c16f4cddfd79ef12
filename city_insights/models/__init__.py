"""
Package initialization file for City Insights models.

This module exports all Pydantic schemas and enumerations from schemas.py and enums.py,
making them importable from city_insights.models directly.

Usage:
    from city_insights.models import (
        FeatureBundle,
        CityIdentifier,
        InsightResult,
        FallbackTier,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from city_insights.models.enums import (
    ConfidenceLevel,
    DataAvailability,
    Dimension,
    FallbackReason,
    FallbackTier,
    RuleCategory,
    ScoreTier,
)


# =============================================================================
# Schemas
# =============================================================================

from city_insights.models.schemas import (
    FALLBACK_PIPELINE_VERSION,
    # -------------------------------------------------------------------------
    # Feature Bundle
    # -------------------------------------------------------------------------
    CityIdentifier,
    ScoreComponent,
    EconomyFeatures,
    LivabilityFeatures,
    SustainabilityFeatures,
    GrowthFeatures,
    DataQualityMetadata,
    FeatureBundle,
    # -------------------------------------------------------------------------
    # Feature Computer
    # -------------------------------------------------------------------------
    RawCityMetrics,
    ScoreResult,
    ComputedScores,
    # -------------------------------------------------------------------------
    # Quality / Guard / Confidence
    # -------------------------------------------------------------------------
    QualityResult,
    GuardResult,
    ConfidenceBreakdown,
    ConfidenceResult,
    # -------------------------------------------------------------------------
    # Inference / Fallback / Result
    # -------------------------------------------------------------------------
    AppliedRule,
    InferenceInsights,
    InsightResult,
    FallbackResponse,
    # -------------------------------------------------------------------------
    # API Requests
    # -------------------------------------------------------------------------
    EvaluateRequest,
    MetricsEvaluateRequest,
)


__all__ = [
    # Enums
    "ConfidenceLevel",
    "DataAvailability",
    "Dimension",
    "FallbackReason",
    "FallbackTier",
    "RuleCategory",
    "ScoreTier",
    # Constants
    "FALLBACK_PIPELINE_VERSION",
    # Feature Bundle
    "CityIdentifier",
    "ScoreComponent",
    "EconomyFeatures",
    "LivabilityFeatures",
    "SustainabilityFeatures",
    "GrowthFeatures",
    "DataQualityMetadata",
    "FeatureBundle",
    # Feature Computer
    "RawCityMetrics",
    "ScoreResult",
    "ComputedScores",
    # Quality / Guard / Confidence
    "QualityResult",
    "GuardResult",
    "ConfidenceBreakdown",
    "ConfidenceResult",
    # Inference / Fallback / Result
    "AppliedRule",
    "InferenceInsights",
    "InsightResult",
    "FallbackResponse",
    # API Requests
    "EvaluateRequest",
    "MetricsEvaluateRequest",
]
