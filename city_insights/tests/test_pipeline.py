"""
Insight Pipeline Test Module

Covers routing between the rule engine and each fallback path, conversion of
pipeline outcomes to InsightResult, the never-raise boundary, the decision
audit log, and end-to-end scenarios over realistic city data.
"""

import logging

import pytest

from city_insights.core.config import Settings, get_settings
from city_insights.models import (
    CityIdentifier,
    EconomyFeatures,
    FallbackReason,
    FallbackTier,
    FeatureBundle,
    LivabilityFeatures,
    RawCityMetrics,
)
from city_insights.services import pipeline
from city_insights.services.pipeline import (
    Degraded,
    Success,
    evaluate,
    evaluate_bundle,
    evaluate_metrics,
    run_pipeline,
    to_insight_result,
)


@pytest.fixture
def fresh_settings_cache():
    """Clear the cached settings before and after a test that edits the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Routing
# =============================================================================


class TestRouting:

    def test_complete_bundle_succeeds(self, complete_bundle, settings):
        outcome = run_pipeline(complete_bundle, settings=settings)
        assert isinstance(outcome, Success)
        assert outcome.confidence.overallConfidence >= settings.low_confidence_threshold
        assert outcome.quality.sufficient is True

    def test_insufficient_data_degrades(self, make_bundle, settings):
        outcome = run_pipeline(make_bundle(economy=70, name=None), settings=settings)
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.INCOMPLETE_DATA

    def test_low_completeness_degrades(self, identifier_only_bundle, settings):
        outcome = run_pipeline(identifier_only_bundle, settings=settings)
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.INCOMPLETE_DATA
        assert outcome.fallback.tier == FallbackTier.TIER_2_METADATA_ONLY

    def test_identical_scores_blocked_by_guard(self, make_bundle, settings):
        outcome = run_pipeline(
            make_bundle(economy=50, livability=50, sustainability=50, growth=50), settings=settings
        )
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.QUALITY_GUARD_BLOCKED

    def test_low_confidence_degrades(self, complete_bundle):
        strict = Settings(_env_file=None, low_confidence_threshold=99.9)
        outcome = run_pipeline(complete_bundle, settings=strict)
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.LOW_CONFIDENCE
        assert outcome.fallback.personality.startswith("Preliminary assessment:")

    def test_low_level_degrades_under_default_settings(self, make_bundle, settings):
        # two scores, both near neutral, 44% complete: overall lands in the LOW band
        outcome = run_pipeline(make_bundle(economy=65, livability=62), settings=settings)
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.LOW_CONFIDENCE
        assert outcome.fallback.confidence < 60.0

        result = evaluate_bundle(make_bundle(economy=65, livability=62), settings=settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert result.caveats
        assert result.quality_tier() == "LOW"

    def test_low_level_degrades_even_with_lower_threshold(self, make_bundle):
        lenient = Settings(_env_file=None, low_confidence_threshold=40.0)
        outcome = run_pipeline(make_bundle(economy=65, livability=62), settings=lenient)
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.LOW_CONFIDENCE

    def test_unavailable_sources_without_scores(self, identifier_only_bundle, settings):
        outcome = run_pipeline(identifier_only_bundle, ["weather_api", "aqi_api"], settings)
        assert isinstance(outcome, Degraded)
        assert outcome.fallback.reason == FallbackReason.API_UNAVAILABLE
        assert outcome.fallback.dataAvailability["weather_api"] == "unavailable"

    def test_unavailable_sources_ignored_when_data_is_good(self, complete_bundle, settings):
        outcome = run_pipeline(complete_bundle, ["weather_api"], settings)
        assert isinstance(outcome, Success)

    def test_stage_errors_propagate_from_run_pipeline(self, complete_bundle, settings, monkeypatch):
        def explode(bundle):
            raise RuntimeError("rule table corrupted")

        monkeypatch.setattr(pipeline, "run_inference", explode)
        with pytest.raises(RuntimeError):
            run_pipeline(complete_bundle, settings=settings)


# =============================================================================
# Outcome Conversion
# =============================================================================


class TestToInsightResult:

    def test_success_carries_rule_version(self, complete_bundle, settings):
        outcome = run_pipeline(complete_bundle, settings=settings)
        result = to_insight_result(outcome, "testville", settings, inference_time_ms=12)
        assert result.pipelineVersion == "rule-1.0"
        assert result.valid is True
        assert result.validationErrors == []
        assert result.caveats == []
        assert result.inferenceTimeMs == 12
        assert result.confidence == pytest.approx(outcome.confidence.overallConfidence / 100.0, abs=1e-4)
        assert result.bestSuitedFor == outcome.insights.audienceSegments

    def test_degraded_carries_fallback_version(self, identifier_only_bundle, settings):
        outcome = run_pipeline(identifier_only_bundle, settings=settings)
        result = to_insight_result(outcome, "tokyo", settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert result.valid is True
        assert result.caveats
        assert result.userMessage

    def test_custom_version_tags(self, complete_bundle):
        custom = Settings(_env_file=None, rule_pipeline_version="rule-2.0")
        outcome = run_pipeline(complete_bundle, settings=custom)
        assert to_insight_result(outcome, "testville", custom).pipelineVersion == "rule-2.0"

    def test_blank_slug_reported_as_unknown(self, complete_bundle, settings):
        outcome = run_pipeline(complete_bundle, settings=settings)
        assert to_insight_result(outcome, "", settings).citySlug == "unknown"

    def test_quality_tier_bands(self, complete_bundle, identifier_only_bundle, settings):
        success = to_insight_result(run_pipeline(complete_bundle, settings=settings), "testville", settings)
        degraded = to_insight_result(run_pipeline(identifier_only_bundle, settings=settings), "tokyo", settings)
        assert success.quality_tier() == "HIGH"
        assert degraded.quality_tier() == "LOW"
        assert success.model_copy(update={"confidence": 0.6}).quality_tier() == "MEDIUM"


# =============================================================================
# Entry Points
# =============================================================================


class TestEvaluate:

    def test_evaluate_bundle_success(self, complete_bundle, settings):
        result = evaluate_bundle(complete_bundle, settings=settings)
        assert result.citySlug == "testville"
        assert result.pipelineVersion == "rule-1.0"
        assert 0.0 <= result.confidence <= 1.0
        assert result.inferenceTimeMs >= 0

    def test_evaluate_none_bundle(self, settings):
        result = evaluate_bundle(None, settings=settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert result.citySlug == "unknown"
        assert result.strengths
        assert result.bestSuitedFor

    def test_evaluate_from_feature_groups(self, tokyo, settings):
        result = evaluate(
            tokyo,
            economy_features=EconomyFeatures(gdpPerCapita=42000, unemploymentRate=2.6, economyScore=72),
            livability_features=LivabilityFeatures(aqiIndex=38, costOfLivingIndex=88, population=13960000,
                                                   livabilityScore=64),
            settings=settings,
        )
        assert result.citySlug == "tokyo"
        assert result.strengths
        assert result.pipelineVersion in ("rule-1.0", "fallback-1.0")

    def test_evaluate_with_nothing(self, settings):
        result = evaluate(None, settings=settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert result.confidence == 0.0

    def test_exception_becomes_fallback_without_leak(self, complete_bundle, settings, monkeypatch):
        def explode(bundle):
            raise RuntimeError("db connection failed: password=secret")

        monkeypatch.setattr(pipeline, "run_inference", explode)
        result = evaluate_bundle(complete_bundle, settings=settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert result.citySlug == "testville"
        assert "try again later" in result.userMessage.lower()
        serialized = result.model_dump_json()
        assert "password" not in serialized
        assert "secret" not in serialized

    def test_exception_is_logged(self, complete_bundle, settings, monkeypatch, caplog):
        def explode(bundle):
            raise ValueError("unexpected")

        monkeypatch.setattr(pipeline, "run_inference", explode)
        with caplog.at_level(logging.ERROR, logger="city_insights.services.fallback"):
            evaluate_bundle(complete_bundle, settings=settings)
        assert any("ValueError" in record.getMessage() for record in caplog.records)

    def test_success_writes_audit_entry(self, complete_bundle, settings, caplog):
        with caplog.at_level(logging.INFO, logger="city_insights.services.decision_logger"):
            evaluate_bundle(complete_bundle, settings=settings)
        assert any(record.getMessage().startswith("Inference audit") for record in caplog.records)

    def test_invalid_environment_falls_back_to_defaults(self, complete_bundle, monkeypatch, fresh_settings_cache):
        monkeypatch.setenv("LOW_CONFIDENCE_THRESHOLD", "abc")
        result = evaluate_bundle(complete_bundle)
        assert result.pipelineVersion == "rule-1.0"
        assert result.valid is True

    def test_evaluate_metrics_complete(self, amsterdam, complete_metrics, settings):
        result = evaluate_metrics(amsterdam, complete_metrics, settings=settings)
        assert result.citySlug == "amsterdam"
        assert result.pipelineVersion == "rule-1.0"
        assert result.valid is True

    def test_evaluate_metrics_empty(self, tokyo, settings):
        result = evaluate_metrics(tokyo, RawCityMetrics(), settings=settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert "Tokyo" in result.personality

    def test_evaluate_metrics_none(self, settings):
        result = evaluate_metrics(None, None, settings=settings)
        assert result.pipelineVersion == "fallback-1.0"

    def test_deterministic_apart_from_timing(self, complete_bundle, settings):
        first = evaluate_bundle(complete_bundle, settings=settings)
        second = evaluate_bundle(complete_bundle, settings=settings)
        assert first.model_copy(update={"inferenceTimeMs": 0}) == second.model_copy(update={"inferenceTimeMs": 0})


# =============================================================================
# Scenarios
# =============================================================================


@pytest.mark.scenario
class TestScenarios:
    """End-to-end runs over realistic city data."""

    def test_strong_city(self, settings):
        bundle = FeatureBundle.model_validate({
            "cityIdentifier": {"slug": "zurich", "name": "Zurich", "country": "Switzerland", "population": 421878},
            "economy": {"gdpPerCapita": 98000, "unemploymentRate": 2.1, "costOfLivingIndex": 140,
                        "economyScore": 88, "explanation": "High GDP and low unemployment"},
            "livability": {"aqiIndex": 25, "costOfLivingIndex": 140, "population": 421878,
                           "livabilityScore": 74, "explanation": "Clean air offset by high costs"},
            "sustainability": {"aqiIndex": 25, "aqiCategory": "Good", "sustainabilityScore": 86,
                               "explanation": "Good air quality"},
            "growth": {"populationGrowthRate": 0.9, "gdpGrowthRate": 1.8, "growthScore": 58,
                       "explanation": "Moderate growth"},
        })
        result = evaluate_bundle(bundle, settings=settings)
        assert result.pipelineVersion == "rule-1.0"
        assert any("economy" in strength.lower() for strength in result.strengths)
        assert "Career-focused professionals" in result.bestSuitedFor
        assert result.personality.startswith("Zurich, Switzerland")

    def test_struggling_city(self, settings):
        bundle = FeatureBundle.model_validate({
            "cityIdentifier": {"slug": "rustford", "name": "Rustford", "country": "USA", "population": 210000},
            "economy": {"gdpPerCapita": 31000, "unemploymentRate": 11.5, "costOfLivingIndex": 82,
                        "economyScore": 22},
            "livability": {"aqiIndex": 95, "costOfLivingIndex": 82, "population": 210000,
                           "livabilityScore": 38},
            "sustainability": {"aqiIndex": 95, "aqiCategory": "Moderate", "sustainabilityScore": 33},
            "growth": {"populationGrowthRate": -0.8, "gdpGrowthRate": 0.2, "growthScore": 18},
        })
        result = evaluate_bundle(bundle, settings=settings)
        assert result.weaknesses
        assert len(result.strengths) >= 2
        assert len(result.bestSuitedFor) >= 2

    def test_raw_metrics_to_insights(self, settings):
        city = CityIdentifier(slug="lisbon", name="Lisbon", country="Portugal")
        metrics = RawCityMetrics(
            gdpPerCapita=38000, unemploymentRate=6.1, costOfLivingIndex=78, aqiIndex=30,
            population=545000, populationGrowthRate=0.4, gdpGrowthRate=2.3,
        )
        result = evaluate_metrics(city, metrics, settings=settings)
        assert result.citySlug == "lisbon"
        assert result.pipelineVersion == "rule-1.0"
        assert "Lisbon" in result.personality

    def test_api_outage_with_identifier_only(self, settings):
        london = CityIdentifier(slug="london", name="London", country="United Kingdom", population=8900000)
        result = evaluate(london, unavailable_sources=["weather_api", "aqi_api"], settings=settings)
        assert result.pipelineVersion == "fallback-1.0"
        assert any("may not reflect current conditions" in caveat for caveat in result.caveats)
        assert result.confidence == pytest.approx(0.30)
