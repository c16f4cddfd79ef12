"""
Confidence Calculator Service

Scores how much an inference result can be trusted, on a 0-100 scale, from
three factors:

- dataCompleteness (40%): the Quality Checker's completeness percentage
- patternReliability (30%): how many of the four dimension scores were
  actually computed and sit in a plausible band (10-90), penalised for
  erratic spread between them
- inferenceStrength (30%): how far the scores sit from the neutral midpoint
  (scores clustered at 50 carry little signal), averaged with how well the
  output lists fit their expected sizes

Levels: HIGH >= 80, MEDIUM >= 60, LOW otherwise.

Pure and deterministic: the same inputs always give the same result.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from city_insights.models.enums import ConfidenceLevel
from city_insights.models.schemas import (
    ConfidenceBreakdown,
    ConfidenceResult,
    InferenceInsights,
    QualityResult,
)
from city_insights.services.inference_rules import format_score


logger = logging.getLogger(__name__)


# =============================================================================
# Weights and Thresholds
# =============================================================================

DATA_COMPLETENESS_WEIGHT = 0.40
PATTERN_RELIABILITY_WEIGHT = 0.30
INFERENCE_STRENGTH_WEIGHT = 0.30

HIGH_CONFIDENCE_THRESHOLD = 80.0
MEDIUM_CONFIDENCE_THRESHOLD = 60.0

EXPECTED_DIMENSIONS = 4
RELIABLE_SCORE_RANGE: Tuple[float, float] = (10.0, 90.0)
VARIANCE_PENALTY_DIVISOR = 10.0
MAX_VARIANCE_PENALTY = 20.0

NEUTRAL_SCORE = 50.0
# Mean distance from neutral that counts as a full-strength signal
SIGNAL_SATURATION_DISTANCE = 25.0

# Expected (min, max) sizes of the inference output lists
EXPECTED_LIST_SIZES = {
    "strengths": (2, 6),
    "weaknesses": (0, 5),
    "audienceSegments": (2, 6),
}
MAX_LIST_FIT_PENALTY = 50.0

# Factors below this are called out in the reasoning text
WEAK_FACTOR_THRESHOLD = 70.0


# =============================================================================
# Factors
# =============================================================================


def _present_scores(scores: Sequence[Optional[float]]) -> List[float]:
    return [s for s in scores if s is not None and math.isfinite(s)]


def calculate_pattern_reliability(scores: Sequence[Optional[float]]) -> float:
    """
    Reliability of the score pattern, 0-100.

    Args:
        scores: The four dimension scores (None where not computed)

    Returns:
        100 x (reliable scores / 4) minus a spread penalty of min(stddev / 10, 20)
    """
    present = _present_scores(scores)
    if not present:
        return 0.0

    low, high = RELIABLE_SCORE_RANGE
    reliable = sum(1 for s in present if low <= s <= high)
    base = reliable / EXPECTED_DIMENSIONS * 100.0

    penalty = 0.0
    if len(present) > 1:
        penalty = min(float(np.std(present)) / VARIANCE_PENALTY_DIVISOR, MAX_VARIANCE_PENALTY)

    return max(0.0, base - penalty)


def calculate_signal_strength(scores: Sequence[Optional[float]]) -> float:
    """How far scores sit from the neutral midpoint, 0-100."""
    present = _present_scores(scores)
    if not present:
        return 0.0
    mean_distance = float(np.mean([abs(s - NEUTRAL_SCORE) for s in present]))
    return min(100.0, mean_distance / SIGNAL_SATURATION_DISTANCE * 100.0)


def calculate_list_fit(count: int, minimum: int, maximum: int) -> float:
    """
    Fit of a list size to its expected range, 0-100.

    Inside the range scores 100; outside it loses up to 50 points in
    proportion to the shortfall or excess.
    """
    if minimum <= count <= maximum:
        return 100.0
    if count < minimum:
        ratio = (minimum - count) / minimum
    else:
        ratio = min(1.0, (count - maximum) / maximum)
    return 100.0 - ratio * MAX_LIST_FIT_PENALTY


def calculate_inference_strength(insights: InferenceInsights) -> float:
    """Average of signal strength and output list fit, 0-100."""
    fits = [
        calculate_list_fit(len(getattr(insights, name)), minimum, maximum)
        for name, (minimum, maximum) in EXPECTED_LIST_SIZES.items()
    ]
    list_fit = sum(fits) / len(fits)
    signal = calculate_signal_strength(list(insights.dimensionScores.values()))
    return (list_fit + signal) / 2.0


def confidence_level(overall: float) -> ConfidenceLevel:
    """Band an overall confidence score."""
    if overall >= HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceLevel.HIGH
    if overall >= MEDIUM_CONFIDENCE_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _build_reasoning(level: ConfidenceLevel, overall: float, breakdown: ConfidenceBreakdown) -> str:
    notes: List[str] = []
    if breakdown.dataCompleteness < WEAK_FACTOR_THRESHOLD:
        notes.append(f"data is only {breakdown.dataCompleteness:.0f}% complete")
    if breakdown.patternReliability < WEAK_FACTOR_THRESHOLD:
        notes.append("dimension scores are sparse or inconsistent")
    if breakdown.inferenceStrength < WEAK_FACTOR_THRESHOLD:
        notes.append("scores sit close to neutral, so the signal is weak")

    text = f"{level.value} confidence ({format_score(overall)}/100)"
    if notes:
        return f"{text}: {'; '.join(notes)}."
    return f"{text}: complete data with a clear, consistent signal."


# =============================================================================
# Entry Point
# =============================================================================


def compute_confidence(quality: QualityResult, insights: InferenceInsights) -> ConfidenceResult:
    """
    Compute overall confidence for an inference.

    Args:
        quality: Quality Checker result for the bundle the insights came from
        insights: Rule-engine output, including the dimension scores it used

    Returns:
        ConfidenceResult where overallConfidence equals
        0.4 x dataCompleteness + 0.3 x patternReliability + 0.3 x inferenceStrength
    """
    scores = list(insights.dimensionScores.values())
    breakdown = ConfidenceBreakdown(
        dataCompleteness=round(quality.completenessPercentage, 2),
        patternReliability=round(calculate_pattern_reliability(scores), 2),
        inferenceStrength=round(calculate_inference_strength(insights), 2),
    )

    overall = (
        DATA_COMPLETENESS_WEIGHT * breakdown.dataCompleteness
        + PATTERN_RELIABILITY_WEIGHT * breakdown.patternReliability
        + INFERENCE_STRENGTH_WEIGHT * breakdown.inferenceStrength
    )
    overall = round(min(100.0, max(0.0, overall)), 2)
    level = confidence_level(overall)

    logger.debug(
        f"Confidence {overall:.1f} ({level.value}): completeness={breakdown.dataCompleteness}, "
        f"reliability={breakdown.patternReliability}, strength={breakdown.inferenceStrength}"
    )

    return ConfidenceResult(
        overallConfidence=overall,
        level=level,
        reasoning=_build_reasoning(level, overall, breakdown),
        breakdown=breakdown,
    )
