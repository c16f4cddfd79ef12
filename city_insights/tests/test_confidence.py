"""
Confidence Calculator Test Module

Covers each confidence factor, the 40/30/30 weighting, level bands and
determinism.
"""

from typing import Dict, Optional

import pytest

from city_insights.models import ConfidenceLevel, InferenceInsights, QualityResult
from city_insights.services.confidence import (
    calculate_list_fit,
    calculate_pattern_reliability,
    calculate_signal_strength,
    compute_confidence,
    confidence_level,
)


def _quality(completeness: float) -> QualityResult:
    return QualityResult(sufficient=True, completenessPercentage=completeness)


def _insights(scores: Dict[str, Optional[float]], strengths: int = 2, audience: int = 2) -> InferenceInsights:
    return InferenceInsights(
        personality="A city.",
        strengths=[f"strength {i}" for i in range(strengths)],
        weaknesses=[],
        audienceSegments=[f"audience {i}" for i in range(audience)],
        dimensionScores=scores,
    )


STRONG_SCORES = {"economy": 70.0, "livability": 68.0, "sustainability": 65.0, "growth": 55.0}


class TestFactors:

    def test_pattern_reliability_all_reliable(self):
        value = calculate_pattern_reliability([70.0, 68.0, 65.0, 55.0])
        # base 100, spread penalty stddev/10 ~= 0.58
        assert value == pytest.approx(99.42, abs=0.01)

    def test_pattern_reliability_counts_missing_scores(self):
        assert calculate_pattern_reliability([70.0, 70.0, None, None]) == pytest.approx(50.0)

    def test_pattern_reliability_extreme_scores_unreliable(self):
        assert calculate_pattern_reliability([95.0, 5.0, None, None]) == 0.0

    def test_pattern_reliability_no_scores(self):
        assert calculate_pattern_reliability([None, None, None, None]) == 0.0

    def test_spread_penalty_is_capped(self):
        value = calculate_pattern_reliability([10.0, 90.0, 10.0, 90.0])
        # stddev 40 -> penalty 4, well under the cap of 20
        assert value == pytest.approx(96.0)

    def test_signal_zero_at_neutral_midpoint(self):
        assert calculate_signal_strength([50.0, 50.0, 50.0, 50.0]) == 0.0

    def test_signal_saturates(self):
        assert calculate_signal_strength([90.0, 10.0, 85.0, 15.0]) == 100.0

    def test_list_fit(self):
        assert calculate_list_fit(3, 2, 6) == 100.0
        assert calculate_list_fit(1, 2, 6) == pytest.approx(75.0)
        assert calculate_list_fit(8, 2, 6) == pytest.approx(100.0 - (2 / 6) * 50.0)
        assert calculate_list_fit(0, 0, 5) == 100.0

    def test_level_bands(self):
        assert confidence_level(80.0) == ConfidenceLevel.HIGH
        assert confidence_level(79.99) == ConfidenceLevel.MEDIUM
        assert confidence_level(60.0) == ConfidenceLevel.MEDIUM
        assert confidence_level(59.9) == ConfidenceLevel.LOW


class TestComputeConfidence:

    def test_weighted_sum_invariant(self):
        result = compute_confidence(_quality(72.0), _insights(STRONG_SCORES))
        b = result.breakdown
        expected = 0.4 * b.dataCompleteness + 0.3 * b.patternReliability + 0.3 * b.inferenceStrength
        assert result.overallConfidence == pytest.approx(expected, abs=0.01)

    def test_complete_strong_data_is_high(self):
        result = compute_confidence(_quality(100.0), _insights(STRONG_SCORES))
        assert result.level == ConfidenceLevel.HIGH
        assert result.breakdown.dataCompleteness == 100.0
        assert result.breakdown.inferenceStrength == pytest.approx(79.0)
        assert result.overallConfidence == pytest.approx(93.53, abs=0.01)

    def test_sparse_data_is_low(self):
        scores = {"economy": None, "livability": None, "sustainability": None, "growth": None}
        result = compute_confidence(_quality(15.0), _insights(scores))
        assert result.level == ConfidenceLevel.LOW
        assert result.overallConfidence < 40.0
        assert "complete" in result.reasoning

    def test_breakdown_bounded(self):
        result = compute_confidence(
            _quality(0.0),
            _insights({"economy": 100.0, "livability": 0.0, "sustainability": None, "growth": None},
                      strengths=0, audience=9),
        )
        for value in (
            result.breakdown.dataCompleteness,
            result.breakdown.patternReliability,
            result.breakdown.inferenceStrength,
            result.overallConfidence,
        ):
            assert 0.0 <= value <= 100.0

    def test_reasoning_names_level(self):
        result = compute_confidence(_quality(100.0), _insights(STRONG_SCORES))
        assert result.reasoning.startswith("HIGH confidence")

    def test_deterministic(self):
        first = compute_confidence(_quality(64.0), _insights(STRONG_SCORES))
        second = compute_confidence(_quality(64.0), _insights(STRONG_SCORES))
        assert first == second
