"""
Inference Rule Engine Test Module

Covers the strength, weakness and audience threshold tables, the list and
personality bounds, filler behaviour, overflow priority and determinism.
"""

import itertools

import pytest

from city_insights.models import (
    CityIdentifier,
    FeatureBundle,
    InferenceInsights,
    RuleCategory,
)
from city_insights.models.enums import Dimension
from city_insights.services.inference_rules import (
    AUDIENCE_RULES,
    MAX_PERSONALITY_LENGTH,
    apply_list_bounds,
    format_score,
    run_inference,
    truncate_text,
    validate_output,
)


# =============================================================================
# Strengths
# =============================================================================


class TestStrengths:

    def test_excellent_economy(self, make_bundle):
        insights = run_inference(make_bundle(economy=85, livability=50, sustainability=50, growth=45))
        matching = [s for s in insights.strengths if "Excellent economy" in s]
        assert len(matching) == 1
        assert "85/100" in matching[0]

    def test_strong_economy(self, make_bundle):
        insights = run_inference(make_bundle(economy=65, livability=50))
        assert any(s.startswith("Strong economy") and "65/100" in s for s in insights.strengths)

    def test_average_economy_is_not_a_strength(self, make_bundle):
        insights = run_inference(make_bundle(economy=45, livability=72, sustainability=66, growth=61))
        assert not any("econom" in s.lower() for s in insights.strengths)

    def test_boundary_sixty_is_strong(self, make_bundle):
        insights = run_inference(make_bundle(growth=60))
        assert any("Strong growth trajectory" in s for s in insights.strengths)

    def test_boundary_eighty_is_exceptional(self, make_bundle):
        insights = run_inference(make_bundle(livability=80))
        assert any("Exceptional quality of life" in s for s in insights.strengths)

    @pytest.mark.parametrize("score,shown", [(79.6, "79.6/100"), (79.96, "79.9/100")])
    def test_shown_score_stays_inside_matched_band(self, make_bundle, score, shown):
        insights = run_inference(make_bundle(economy=score))
        matching = [s for s in insights.strengths if s.startswith("Strong economy")]
        assert len(matching) == 1
        assert shown in matching[0]
        assert "80/100" not in matching[0]


class TestFormatScore:

    @pytest.mark.parametrize("score,expected", [
        (85.0, "85"),
        (79.6, "79.6"),
        (79.96, "79.9"),
        (39.99, "39.9"),
        (60.0, "60"),
        (0.0, "0"),
        (100.0, "100"),
    ])
    def test_truncates_to_one_decimal(self, score, expected):
        assert format_score(score) == expected


# =============================================================================
# Weaknesses
# =============================================================================


class TestWeaknesses:

    def test_all_scores_at_least_sixty_have_no_weaknesses(self, make_bundle):
        insights = run_inference(make_bundle(economy=60, livability=75, sustainability=90, growth=61))
        assert insights.weaknesses == []

    def test_one_weakness_per_low_dimension(self, make_bundle):
        insights = run_inference(make_bundle(economy=30, livability=35, sustainability=70, growth=50))
        assert len(insights.weaknesses) == 2
        assert "economy" in insights.weaknesses[0].lower()
        assert "30/100" in insights.weaknesses[0]
        assert "livability" in insights.weaknesses[1].lower()

    def test_very_low_score_uses_stronger_wording(self, make_bundle):
        insights = run_inference(make_bundle(economy=10, livability=50))
        assert insights.weaknesses == ["Struggling economy with limited opportunities (10/100)"]

    def test_near_boundary_weakness_not_shown_as_forty(self, make_bundle):
        insights = run_inference(make_bundle(economy=39.6, livability=50))
        assert insights.weaknesses == ["Weak economy with limited job prospects (39.6/100)"]

    def test_forty_is_not_a_weakness(self, make_bundle):
        insights = run_inference(make_bundle(economy=40, livability=40, sustainability=40, growth=41))
        assert insights.weaknesses == []


# =============================================================================
# Audience
# =============================================================================


class TestAudience:

    def test_career_focused_professionals(self, make_bundle):
        insights = run_inference(make_bundle(economy=60))
        assert "Career-focused professionals" in insights.audienceSegments

    def test_remote_workers(self, make_bundle):
        insights = run_inference(make_bundle(economy=70, livability=68))
        assert "Remote workers" in insights.audienceSegments

    def test_remote_workers_needs_livability(self, make_bundle):
        insights = run_inference(make_bundle(economy=70, livability=55))
        assert "Remote workers" not in insights.audienceSegments

    def test_families(self, make_bundle):
        insights = run_inference(make_bundle(livability=65, sustainability=62))
        assert "Families" in insights.audienceSegments
        assert "Retirees" not in insights.audienceSegments

    def test_retirees(self, make_bundle):
        insights = run_inference(make_bundle(livability=75, sustainability=78))
        assert "Retirees" in insights.audienceSegments

    def test_students(self, make_bundle):
        assert "Students" in run_inference(make_bundle(livability=52, growth=66)).audienceSegments
        assert "Students" not in run_inference(make_bundle(livability=45, growth=66)).audienceSegments

    def test_budget_conscious(self, make_bundle):
        insights = run_inference(make_bundle(livability=50, cost_of_living=85))
        assert "Budget-conscious movers" in insights.audienceSegments

    def test_overflow_drops_lowest_priority(self, make_bundle):
        insights = run_inference(
            make_bundle(economy=95, livability=92, sustainability=90, growth=88, cost_of_living=80)
        )
        fired = [rule.output for rule in insights.appliedRules if rule.category == RuleCategory.AUDIENCE]
        assert len(fired) == len(AUDIENCE_RULES)
        assert len(insights.audienceSegments) == 6
        assert insights.audienceSegments[0] == "Career-focused professionals"
        assert "Students" not in insights.audienceSegments
        assert "Entrepreneurs and startup founders" not in insights.audienceSegments


# =============================================================================
# Bounds and Fillers
# =============================================================================


class TestBounds:

    def test_bounds_hold_across_score_grid(self):
        values = (None, 15.0, 50.0, 75.0, 95.0)
        for economy, livability, sustainability, growth in itertools.product(values, repeat=4):
            bundle = FeatureBundle.model_validate({
                "cityIdentifier": {"name": "Gridville", "population": 400000},
                "economy": None if economy is None else {"economyScore": economy},
                "livability": None if livability is None else {"livabilityScore": livability},
                "sustainability": None if sustainability is None else {"sustainabilityScore": sustainability},
                "growth": None if growth is None else {"growthScore": growth},
            })
            insights = run_inference(bundle)
            assert 2 <= len(insights.strengths) <= 6
            assert 2 <= len(insights.audienceSegments) <= 6
            assert len(insights.personality) <= MAX_PERSONALITY_LENGTH
            assert validate_output(insights) == (True, [])

    def test_empty_bundle_gets_generic_fillers(self, empty_bundle):
        insights = run_inference(empty_bundle)
        assert insights.strengths == ["Balanced urban characteristics", "Diverse community characteristics"]
        assert insights.audienceSegments == ["Curious travelers", "Open-minded explorers"]
        assert insights.weaknesses == []
        assert insights.personality.startswith("This city")

    def test_fillers_keyed_off_identifier_without_numbers(self, make_bundle):
        insights = run_inference(make_bundle(economy=50, population=2_500_000, country='Japan'))
        assert insights.strengths[0] == "Major metropolitan area with a wide range of amenities"
        assert "Japan" in insights.strengths[1]
        assert insights.audienceSegments[0] == "Big-city enthusiasts"
        for text in insights.strengths + insights.audienceSegments:
            assert not any(char.isdigit() for char in text)
        assert any(rule.category == RuleCategory.FILLER for rule in insights.appliedRules)

    def test_personality_truncated_on_overlong_name(self):
        bundle = FeatureBundle(cityIdentifier=CityIdentifier(name="X" * 600, country="Y"))
        insights = run_inference(bundle)
        assert len(insights.personality) <= MAX_PERSONALITY_LENGTH
        assert insights.personality.endswith("...")

    def test_truncate_text_on_word_boundary(self):
        text = "word " * 200
        truncated = truncate_text(text, 50)
        assert len(truncated) <= 50
        assert truncated.endswith("word...")

    def test_apply_list_bounds(self):
        entries = [
            ("growth entry", Dimension.GROWTH),
            ("economy entry", Dimension.ECONOMY),
            ("livability entry", Dimension.LIVABILITY),
        ]
        bounded, used = apply_list_bounds(entries, ["filler"], minimum=2, maximum=2)
        assert bounded == ["economy entry", "livability entry"]
        assert used == []

        bounded, used = apply_list_bounds([], ["a", "b", "c"], minimum=2, maximum=6)
        assert bounded == ["a", "b"]
        assert used == ["a", "b"]


# =============================================================================
# Personality
# =============================================================================


class TestPersonality:

    def test_primary_and_supporting_traits(self, make_bundle):
        insights = run_inference(make_bundle(economy=85, livability=70, sustainability=65, growth=20))
        assert insights.personality.startswith("Testville, Testland is defined by a thriving economy.")
        assert "It also offers a comfortable quality of life and clean, healthy surroundings." in insights.personality

    def test_high_cost_trade_off(self, make_bundle):
        insights = run_inference(make_bundle(livability=70, cost_of_living=130))
        assert "high cost of living (index 130)" in insights.personality

    def test_low_sustainability_trade_off(self, make_bundle):
        insights = run_inference(make_bundle(economy=70, sustainability=30))
        assert "environmental quality that lags behind (30/100)" in insights.personality

    def test_mixed_profile(self, make_bundle):
        insights = run_inference(make_bundle(economy=50, livability=45))
        assert "mixed profile" in insights.personality


# =============================================================================
# Determinism and Output Validation
# =============================================================================


class TestDeterminism:

    def test_same_bundle_same_insights(self, complete_bundle):
        first = run_inference(complete_bundle)
        second = run_inference(complete_bundle)
        assert first == second
        assert first.personality == second.personality
        assert first.strengths == second.strengths
        assert first.weaknesses == second.weaknesses
        assert first.audienceSegments == second.audienceSegments

    def test_dimension_scores_recorded(self, complete_bundle):
        insights = run_inference(complete_bundle)
        assert insights.dimensionScores == {
            "economy": 72.0,
            "livability": 68.0,
            "sustainability": 81.0,
            "growth": 55.0,
        }

    def test_validate_output_flags_violations(self):
        insights = InferenceInsights(
            personality="",
            strengths=["only one"],
            weaknesses=[],
            audienceSegments=["a", "a"],
        )
        valid, errors = validate_output(insights)
        assert valid is False
        assert "personality is empty" in errors
        assert any(error.startswith("strengths count") for error in errors)
        assert "audienceSegments contains duplicates" in errors

    @pytest.mark.parametrize("score", [0.0, 39.9, 40.0, 59.9, 60.0, 79.9, 80.0, 100.0])
    def test_each_band_is_valid_output(self, make_bundle, score):
        insights = run_inference(make_bundle(economy=score, livability=score))
        assert validate_output(insights)[0] is True
