"""
Pydantic models for the City Insights service.

This module provides type-safe data validation and serialization for every record
that flows through the insight pipeline: the feature bundle produced upstream, the
intermediate quality/guard/confidence results, the rule-engine insights, the
fallback response, and the caller-facing insight result.

Field names are camelCase because these models are the JSON contract consumed by
the presentation layer. Every model is immutable (`frozen=True`); pipeline stages
build new records instead of mutating the ones they receive.

Score range is intentionally NOT enforced here: a score outside [0, 100] must
reach the Quality Checker so it can be reported as an issue rather than being
rejected or clamped at construction time.

All models use Pydantic v2 syntax.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from city_insights.models.enums import (
    ConfidenceLevel,
    Dimension,
    FallbackReason,
    FallbackTier,
    RuleCategory,
    ScoreTier,
)


# Version tag carried by results produced by the fallback service
FALLBACK_PIPELINE_VERSION = "fallback-1.0"


# =============================================================================
# Feature Bundle
# =============================================================================


class CityIdentifier(BaseModel):
    """
    Identifying metadata for a city.

    Population is kept as reported: a negative value is invalid input that the
    Quality Checker flags, not something this model rejects.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "slug": "amsterdam",
                "name": "Amsterdam",
                "state": "North Holland",
                "country": "Netherlands",
                "population": 872680,
                "sizeCategory": "large",
            }
        }
    )

    slug: Optional[str] = Field(default=None, description="URL-safe city identifier")
    name: Optional[str] = Field(default=None, description="Display name of the city")
    state: Optional[str] = Field(default=None, description="State, province, or region")
    country: Optional[str] = Field(default=None, description="Country name")
    population: Optional[int] = Field(default=None, description="Total population")
    sizeCategory: Optional[str] = Field(
        default=None,
        description="Size band (small, medium, large, metropolis)"
    )


class ScoreComponent(BaseModel):
    """One weighted input to a dimension score, kept for explainability."""
    model_config = ConfigDict(frozen=True)

    inputName: str = Field(..., description="Raw metric name, e.g. gdpPerCapita")
    label: str = Field(..., description="Human label used in explanations")
    rawValue: float = Field(..., description="Literal input value")
    displayValue: str = Field(..., description="Formatted literal value, e.g. $85K")
    normalizedValue: float = Field(..., description="Sub-score on the 0-100 scale, after inversion")
    weight: float = Field(..., description="Effective weight after renormalisation")
    contribution: float = Field(..., description="normalizedValue x weight, in score points")


class EconomyFeatures(BaseModel):
    """Economic indicators and the derived economy score."""
    model_config = ConfigDict(frozen=True)

    gdpPerCapita: Optional[float] = Field(default=None, description="GDP per capita in USD")
    unemploymentRate: Optional[float] = Field(default=None, description="Unemployment rate in percent")
    costOfLivingIndex: Optional[float] = Field(default=None, description="Cost of living index (100 = baseline)")
    economyScore: Optional[float] = Field(default=None, description="Economy score, 0-100")
    economyTier: Optional[ScoreTier] = None
    explanation: Optional[str] = None
    components: List[ScoreComponent] = Field(default_factory=list)

    @property
    def score(self) -> Optional[float]:
        return self.economyScore


class LivabilityFeatures(BaseModel):
    """Livability indicators and the derived livability score."""
    model_config = ConfigDict(frozen=True)

    aqiIndex: Optional[float] = Field(default=None, description="Air quality index (lower is better)")
    costOfLivingIndex: Optional[float] = Field(default=None, description="Cost of living index (100 = baseline)")
    population: Optional[int] = Field(default=None, description="Population used for density effects")
    livabilityScore: Optional[float] = Field(default=None, description="Livability score, 0-100")
    livabilityTier: Optional[ScoreTier] = None
    explanation: Optional[str] = None
    components: List[ScoreComponent] = Field(default_factory=list)

    @property
    def score(self) -> Optional[float]:
        return self.livabilityScore


class SustainabilityFeatures(BaseModel):
    """Environmental indicators and the derived sustainability score."""
    model_config = ConfigDict(frozen=True)

    aqiIndex: Optional[float] = Field(default=None, description="Air quality index (lower is better)")
    aqiCategory: Optional[str] = Field(default=None, description="Air quality category label")
    sustainabilityScore: Optional[float] = Field(default=None, description="Sustainability score, 0-100")
    sustainabilityTier: Optional[ScoreTier] = None
    explanation: Optional[str] = None
    components: List[ScoreComponent] = Field(default_factory=list)

    @property
    def score(self) -> Optional[float]:
        return self.sustainabilityScore


class GrowthFeatures(BaseModel):
    """Growth indicators and the derived growth score."""
    model_config = ConfigDict(frozen=True)

    populationGrowthRate: Optional[float] = Field(default=None, description="Annual population growth, percent")
    gdpGrowthRate: Optional[float] = Field(default=None, description="Annual GDP growth, percent")
    growthScore: Optional[float] = Field(default=None, description="Growth score, 0-100")
    growthTier: Optional[ScoreTier] = None
    explanation: Optional[str] = None
    components: List[ScoreComponent] = Field(default_factory=list)

    @property
    def score(self) -> Optional[float]:
        return self.growthScore


class DataQualityMetadata(BaseModel):
    """Data quality metadata supplied by the upstream collaborator, if any."""
    model_config = ConfigDict(frozen=True)

    completenessPercentage: Optional[float] = Field(default=None, description="Measured completeness, 0-100")
    missingFields: List[str] = Field(default_factory=list)
    freshnessCategory: Optional[str] = Field(default=None, description="e.g. fresh, stale, unknown")
    confidenceScore: Optional[float] = Field(default=None, description="Upstream confidence, 0-100")


class FeatureBundle(BaseModel):
    """
    Structured input to the inference pipeline.

    Every sub-group is optional; a completely empty bundle is valid input and
    simply degrades to the safe default downstream.
    """
    model_config = ConfigDict(frozen=True)

    cityIdentifier: Optional[CityIdentifier] = None
    economy: Optional[EconomyFeatures] = None
    livability: Optional[LivabilityFeatures] = None
    sustainability: Optional[SustainabilityFeatures] = None
    growth: Optional[GrowthFeatures] = None
    dataQuality: Optional[DataQualityMetadata] = None

    def feature_groups(self) -> Dict[Dimension, Optional[BaseModel]]:
        """Return the four feature groups keyed by dimension, in priority order."""
        return {
            Dimension.ECONOMY: self.economy,
            Dimension.LIVABILITY: self.livability,
            Dimension.SUSTAINABILITY: self.sustainability,
            Dimension.GROWTH: self.growth,
        }

    def dimension_scores(self) -> Dict[Dimension, Optional[float]]:
        """Return the four dimension scores (None where missing), in priority order."""
        return {
            dimension: (group.score if group is not None else None)
            for dimension, group in self.feature_groups().items()
        }

    @property
    def city_name(self) -> Optional[str]:
        if self.cityIdentifier is None or not self.cityIdentifier.name:
            return None
        return self.cityIdentifier.name

    @property
    def country(self) -> Optional[str]:
        if self.cityIdentifier is None or not self.cityIdentifier.country:
            return None
        return self.cityIdentifier.country

    @property
    def population(self) -> Optional[int]:
        """Population from the identifier, falling back to the livability group."""
        if self.cityIdentifier is not None and self.cityIdentifier.population is not None:
            return self.cityIdentifier.population
        if self.livability is not None:
            return self.livability.population
        return None

    @property
    def city_slug(self) -> str:
        if self.cityIdentifier is not None and self.cityIdentifier.slug:
            return self.cityIdentifier.slug
        return "unknown"


# =============================================================================
# Feature Computer
# =============================================================================


class RawCityMetrics(BaseModel):
    """Raw metric values the Feature Computer turns into scores. All optional."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "gdpPerCapita": 85000,
                "unemploymentRate": 4.2,
                "costOfLivingIndex": 125,
                "aqiIndex": 42,
                "population": 872680,
                "populationGrowthRate": 0.8,
                "gdpGrowthRate": 2.1,
            }
        }
    )

    gdpPerCapita: Optional[float] = None
    unemploymentRate: Optional[float] = None
    costOfLivingIndex: Optional[float] = None
    aqiIndex: Optional[float] = None
    population: Optional[int] = None
    populationGrowthRate: Optional[float] = None
    gdpGrowthRate: Optional[float] = None


class ScoreResult(BaseModel):
    """A single computed score with its explanation and provenance."""
    model_config = ConfigDict(frozen=True)

    score: Optional[float] = Field(default=None, description="0-100, None when no input was available")
    tier: ScoreTier = ScoreTier.UNAVAILABLE
    explanation: str = ""
    components: List[ScoreComponent] = Field(default_factory=list)
    missingData: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, description="Share of input weight that was available, 0-1")

    @property
    def is_available(self) -> bool:
        return self.score is not None


class ComputedScores(BaseModel):
    """Output of the Feature Computer."""
    model_config = ConfigDict(frozen=True)

    economyScore: Optional[float] = None
    livabilityScore: Optional[float] = None
    sustainabilityScore: Optional[float] = None
    growthScore: Optional[float] = None
    overallScore: Optional[float] = None
    explanations: Dict[str, str] = Field(default_factory=dict)
    details: Dict[str, ScoreResult] = Field(default_factory=dict)
    dataCompleteness: float = Field(default=0.0, description="Share of raw inputs present, 0-100")


# =============================================================================
# Quality Checker / Guard / Confidence
# =============================================================================


class QualityResult(BaseModel):
    """Outcome of the Quality Checker. `sufficient` is true iff there are no issues."""
    model_config = ConfigDict(frozen=True)

    sufficient: bool
    completenessPercentage: float = Field(..., ge=0, le=100)
    issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Data Quality: {'SUFFICIENT' if self.sufficient else 'INSUFFICIENT'} "
            f"({self.completenessPercentage:.1f}% complete), "
            f"Issues: {len(self.issues)}, Warnings: {len(self.warnings)}"
        )


class GuardResult(BaseModel):
    """Outcome of the pre-inference Quality Guard."""
    model_config = ConfigDict(frozen=True)

    proceed: bool
    blockers: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    guidance: str = ""

    def summary(self) -> str:
        return (
            f"{'PASS' if self.proceed else 'FAIL'} - "
            f"Blockers: {len(self.blockers)}, Recommendations: {len(self.recommendations)}"
        )


class ConfidenceBreakdown(BaseModel):
    """Component scores (0-100 each) behind the overall confidence."""
    model_config = ConfigDict(frozen=True)

    dataCompleteness: float
    patternReliability: float
    inferenceStrength: float


class ConfidenceResult(BaseModel):
    """
    Overall confidence in an inference.

    overallConfidence = 0.4 x dataCompleteness + 0.3 x patternReliability
    + 0.3 x inferenceStrength.
    """
    model_config = ConfigDict(frozen=True)

    overallConfidence: float = Field(..., ge=0, le=100)
    level: ConfidenceLevel
    reasoning: str
    breakdown: ConfidenceBreakdown


# =============================================================================
# Inference Rule Engine
# =============================================================================


class AppliedRule(BaseModel):
    """A rule that fired during inference, recorded for the audit log."""
    model_config = ConfigDict(frozen=True)

    category: RuleCategory
    condition: str
    output: str


class InferenceInsights(BaseModel):
    """
    Rule-engine output.

    Bounds: personality <= 500 chars, 2-6 strengths, 2-6 audience segments.
    """
    model_config = ConfigDict(frozen=True)

    personality: str
    strengths: List[str]
    weaknesses: List[str]
    audienceSegments: List[str]
    dimensionScores: Dict[str, Optional[float]] = Field(
        default_factory=dict,
        description="The dimension scores the insights were derived from"
    )
    appliedRules: List[AppliedRule] = Field(default_factory=list)


# =============================================================================
# Caller-facing Result
# =============================================================================


class InsightResult(BaseModel):
    """
    Caller-facing insight result. No field is ever null.

    Degradation is signalled through `pipelineVersion` ("rule-1.0" for normal
    results, "fallback-1.0" for degraded ones) and `caveats`; `valid` stays true
    for both because a fallback is a usable, well-formed result.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "citySlug": "amsterdam",
                "personality": "Amsterdam, Netherlands is defined by its high quality of life.",
                "strengths": ["Good quality of life (72/100)", "Strong economy (65/100)"],
                "weaknesses": [],
                "bestSuitedFor": ["Career-focused professionals", "Remote workers"],
                "confidence": 0.82,
                "pipelineVersion": "rule-1.0",
                "valid": True,
                "caveats": [],
                "userMessage": "",
                "inferenceTimeMs": 3,
                "validationErrors": [],
            }
        }
    )

    citySlug: str
    personality: str
    strengths: List[str]
    weaknesses: List[str]
    bestSuitedFor: List[str]
    confidence: float = Field(..., ge=0, le=1, description="Overall confidence, 0-1")
    pipelineVersion: str
    valid: bool
    caveats: List[str] = Field(default_factory=list)
    userMessage: str = ""
    inferenceTimeMs: int = 0
    validationErrors: List[str] = Field(default_factory=list)

    def quality_tier(self) -> str:
        """HIGH (>= 0.8), MEDIUM (>= 0.6) or LOW confidence band."""
        if self.confidence >= 0.8:
            return ConfidenceLevel.HIGH.value
        if self.confidence >= 0.6:
            return ConfidenceLevel.MEDIUM.value
        return ConfidenceLevel.LOW.value


# =============================================================================
# Fallback Service
# =============================================================================


class FallbackResponse(BaseModel):
    """
    Degraded-but-useful response. Every field is mandatory and non-null.

    `confidence` is on the 0-100 scale; it is converted to 0-1 when the
    response becomes an InsightResult.
    """
    model_config = ConfigDict(frozen=True)

    tier: FallbackTier
    reason: FallbackReason
    personality: str
    strengths: List[str]
    weaknesses: List[str]
    audienceSegments: List[str]
    confidence: float = Field(..., ge=0, le=100)
    caveats: List[str]
    dataAvailability: Dict[str, str]
    userMessage: str

    def degradation_severity(self) -> int:
        """1 for partial data, 2 for metadata only, 3 for the safe default."""
        return self.tier.severity

    def is_degraded(self) -> bool:
        """True for anything worse than partial data."""
        return self.tier != FallbackTier.TIER_1_PARTIAL_DATA

    def to_inference_result(
        self,
        city_slug: str,
        pipeline_version: str = FALLBACK_PIPELINE_VERSION,
    ) -> InsightResult:
        """Convert to the caller-facing result, marked with the fallback version."""
        return InsightResult(
            citySlug=city_slug or "unknown",
            personality=self.personality,
            strengths=list(self.strengths),
            weaknesses=list(self.weaknesses),
            bestSuitedFor=list(self.audienceSegments),
            confidence=round(self.confidence / 100.0, 4),
            pipelineVersion=pipeline_version,
            valid=True,
            caveats=list(self.caveats),
            userMessage=self.userMessage,
        )


# =============================================================================
# API Request Models
# =============================================================================


class EvaluateRequest(BaseModel):
    """Request body for evaluating an already-assembled feature bundle."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cityIdentifier": {"slug": "tokyo", "name": "Tokyo", "country": "Japan", "population": 13960000},
                "economy": {"gdpPerCapita": 42000, "unemploymentRate": 2.6, "economyScore": 72},
                "livability": {"livabilityScore": 64},
                "sustainability": {"sustainabilityScore": 70},
                "growth": {"growthScore": 45},
                "unavailableSources": [],
            }
        }
    )

    cityIdentifier: Optional[CityIdentifier] = None
    economy: Optional[EconomyFeatures] = None
    livability: Optional[LivabilityFeatures] = None
    sustainability: Optional[SustainabilityFeatures] = None
    growth: Optional[GrowthFeatures] = None
    dataQuality: Optional[DataQualityMetadata] = None
    unavailableSources: List[str] = Field(
        default_factory=list,
        description="Upstream sources that could not be reached while assembling the bundle"
    )


class MetricsEvaluateRequest(BaseModel):
    """Request body for scoring raw metrics and evaluating them in one call."""

    cityIdentifier: Optional[CityIdentifier] = None
    metrics: RawCityMetrics = Field(default_factory=RawCityMetrics)
    unavailableSources: List[str] = Field(default_factory=list)
