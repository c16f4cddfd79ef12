"""
Business logic services for the City Insights pipeline.

Modules:
    feature_computer: Raw metrics -> normalised, explainable dimension scores
    quality_checker: Validation and completeness of a feature bundle
    quality_guard: Pre-inference plausibility checks (blockers / recommendations)
    inference_rules: Threshold-table rule engine producing insights
    confidence: Confidence scoring of an inference
    fallback: Degraded-but-useful responses for every failure mode
    decision_logger: Audit log of the rules behind an inference
    pipeline: Orchestration and the never-raising `evaluate` entry points

Usage:
    from city_insights.services import evaluate, compute_scores

    result = evaluate(CityIdentifier(slug="tokyo", name="Tokyo", country="Japan"))
"""

from city_insights.services.confidence import compute_confidence
from city_insights.services.decision_logger import AuditLog, log_inference
from city_insights.services.fallback import (
    handle_api_unavailable,
    handle_guard_blocked,
    handle_incomplete_data,
    handle_inference_error,
    handle_low_confidence,
)
from city_insights.services.feature_computer import build_feature_bundle, compute_scores
from city_insights.services.inference_rules import run_inference, validate_output
from city_insights.services.pipeline import (
    Degraded,
    PipelineOutcome,
    Success,
    evaluate,
    evaluate_bundle,
    evaluate_metrics,
    run_pipeline,
    to_insight_result,
)
from city_insights.services.quality_checker import validate_data
from city_insights.services.quality_guard import validate_for_inference


__all__ = [
    # Feature Computer
    "compute_scores",
    "build_feature_bundle",
    # Quality
    "validate_data",
    "validate_for_inference",
    # Inference
    "run_inference",
    "validate_output",
    "compute_confidence",
    # Fallback
    "handle_incomplete_data",
    "handle_low_confidence",
    "handle_api_unavailable",
    "handle_inference_error",
    "handle_guard_blocked",
    # Audit
    "AuditLog",
    "log_inference",
    # Pipeline
    "Success",
    "Degraded",
    "PipelineOutcome",
    "run_pipeline",
    "to_insight_result",
    "evaluate",
    "evaluate_bundle",
    "evaluate_metrics",
]
