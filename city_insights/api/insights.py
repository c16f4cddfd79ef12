"""
FastAPI router module for city insight endpoints.

This module exposes the pure insight pipeline over JSON:
- POST /insights/evaluate: evaluate an assembled feature bundle
- POST /insights/evaluate-metrics: score raw metrics, then evaluate
- POST /insights/scores: score raw metrics only

The pipeline never raises; degraded results come back as normal 200 responses
tagged with the fallback pipeline version. Malformed request bodies are
rejected by FastAPI with 422 before the pipeline is reached.
"""

import logging

from fastapi import APIRouter

from city_insights.core.dependencies import SettingsDep
from city_insights.models import (
    ComputedScores,
    EvaluateRequest,
    FeatureBundle,
    InsightResult,
    MetricsEvaluateRequest,
    RawCityMetrics,
)
from city_insights.services.feature_computer import compute_scores
from city_insights.services.pipeline import evaluate_bundle, evaluate_metrics


logger = logging.getLogger(__name__)

# Create router with prefix and tags for OpenAPI documentation
router = APIRouter(prefix="/insights", tags=["insights"])


@router.post("/evaluate", response_model=InsightResult)
async def evaluate_city(request: EvaluateRequest, settings: SettingsDep) -> InsightResult:
    """
    Evaluate a city from its feature bundle.

    Args:
        request: City identifier, optional feature groups, and any upstream
            sources that were unavailable
        settings: Injected application settings

    Returns:
        InsightResult (rule-based or fallback)
    """
    bundle = FeatureBundle(
        cityIdentifier=request.cityIdentifier,
        economy=request.economy,
        livability=request.livability,
        sustainability=request.sustainability,
        growth=request.growth,
        dataQuality=request.dataQuality,
    )
    logger.debug(f"Evaluate request for {bundle.city_slug}")
    return evaluate_bundle(bundle, request.unavailableSources, settings)


@router.post("/evaluate-metrics", response_model=InsightResult)
async def evaluate_city_metrics(request: MetricsEvaluateRequest, settings: SettingsDep) -> InsightResult:
    """Score raw metrics and evaluate them in one call."""
    return evaluate_metrics(request.cityIdentifier, request.metrics, request.unavailableSources, settings)


@router.post("/scores", response_model=ComputedScores)
async def score_metrics(metrics: RawCityMetrics) -> ComputedScores:
    """Compute dimension and overall scores from raw metrics."""
    return compute_scores(metrics)
