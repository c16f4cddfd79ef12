"""
Inference Rule Engine

Derives a personality narrative, strengths, weaknesses and audience segments
from a feature bundle using literal threshold tables. Each table is a list of
(predicate, template) rows evaluated in a single pass; there is no randomness,
no clock and no external call, so the same bundle always yields the same
insights.

Score bands:
- >= 80: "Excellent/Exceptional" strength
- 60-79: "Strong/Good" strength
- 40-59: neither strength nor weakness
- 20-39: weakness
- < 20: weakness with stronger wording

Output bounds:
- personality <= 500 characters (truncated on a word boundary)
- strengths: 2-6
- weaknesses: one per dimension below 40 (0-4)
- audience segments: 2-6

Lists below their minimum are topped up with generic fillers keyed off the
identifier (population size, country); they never contain numbers that were
not supplied. Lists above their maximum drop entries in dimension priority
order: economy > livability > sustainability > growth.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from city_insights.models.enums import Dimension, RuleCategory
from city_insights.models.schemas import AppliedRule, FeatureBundle, InferenceInsights


logger = logging.getLogger(__name__)


# =============================================================================
# Output Bounds
# =============================================================================

MAX_PERSONALITY_LENGTH = 500
MIN_STRENGTHS = 2
MAX_STRENGTHS = 6
MAX_WEAKNESSES = 5
MIN_AUDIENCE = 2
MAX_AUDIENCE = 6

DIMENSION_PRIORITY: Tuple[Dimension, ...] = (
    Dimension.ECONOMY,
    Dimension.LIVABILITY,
    Dimension.SUSTAINABILITY,
    Dimension.GROWTH,
)

STRONG_SCORE = 60.0
HIGH_COST_OF_LIVING = 120.0
LOW_SUSTAINABILITY = 40.0
LARGE_CITY_POPULATION = 1_000_000
SMALL_CITY_POPULATION = 100_000


# =============================================================================
# Rule Tables
# =============================================================================


@dataclass(frozen=True)
class ScoreRule:
    """Fires when lower <= score < upper for one dimension."""
    dimension: Dimension
    lower: float
    upper: float
    template: str

    def matches(self, score: Optional[float]) -> bool:
        return score is not None and self.lower <= score < self.upper

    def describe(self) -> str:
        if self.lower == -math.inf:
            return f"{self.dimension.value} < {self.upper:g}"
        if self.upper == math.inf:
            return f"{self.dimension.value} >= {self.lower:g}"
        return f"{self.lower:g} <= {self.dimension.value} < {self.upper:g}"


@dataclass(frozen=True)
class Threshold:
    """One condition on a named signal: signal >= minimum, or signal < below."""
    signal: str
    minimum: Optional[float] = None
    below: Optional[float] = None

    def matches(self, signals: Dict[str, Optional[float]]) -> bool:
        value = signals.get(self.signal)
        if value is None:
            return False
        if self.minimum is not None and value < self.minimum:
            return False
        if self.below is not None and value >= self.below:
            return False
        return True

    def describe(self) -> str:
        if self.minimum is not None:
            return f"{self.signal} >= {self.minimum:g}"
        return f"{self.signal} < {self.below:g}"


@dataclass(frozen=True)
class AudienceRule:
    segment: str
    priority: Dimension
    conditions: Tuple[Threshold, ...]

    def matches(self, signals: Dict[str, Optional[float]]) -> bool:
        return all(condition.matches(signals) for condition in self.conditions)

    def describe(self) -> str:
        return " and ".join(condition.describe() for condition in self.conditions)


STRENGTH_RULES: Tuple[ScoreRule, ...] = (
    ScoreRule(Dimension.ECONOMY, 80, math.inf, "Excellent economy with diverse opportunities ({score}/100)"),
    ScoreRule(Dimension.ECONOMY, 60, 80, "Strong economy with solid job prospects ({score}/100)"),
    ScoreRule(Dimension.LIVABILITY, 80, math.inf, "Exceptional quality of life ({score}/100)"),
    ScoreRule(Dimension.LIVABILITY, 60, 80, "Good quality of life ({score}/100)"),
    ScoreRule(Dimension.SUSTAINABILITY, 80, math.inf, "Excellent environmental quality ({score}/100)"),
    ScoreRule(Dimension.SUSTAINABILITY, 60, 80, "Good environmental quality ({score}/100)"),
    ScoreRule(Dimension.GROWTH, 80, math.inf, "Exceptional growth trajectory ({score}/100)"),
    ScoreRule(Dimension.GROWTH, 60, 80, "Strong growth trajectory ({score}/100)"),
)

WEAKNESS_RULES: Tuple[ScoreRule, ...] = (
    ScoreRule(Dimension.ECONOMY, -math.inf, 20, "Struggling economy with limited opportunities ({score}/100)"),
    ScoreRule(Dimension.ECONOMY, 20, 40, "Weak economy with limited job prospects ({score}/100)"),
    ScoreRule(Dimension.LIVABILITY, -math.inf, 20, "Serious livability challenges ({score}/100)"),
    ScoreRule(Dimension.LIVABILITY, 20, 40, "Below-average livability ({score}/100)"),
    ScoreRule(Dimension.SUSTAINABILITY, -math.inf, 20, "Severe sustainability concerns with poor air quality ({score}/100)"),
    ScoreRule(Dimension.SUSTAINABILITY, 20, 40, "Sustainability concerns, environmental quality needs improvement ({score}/100)"),
    ScoreRule(Dimension.GROWTH, -math.inf, 20, "Stagnant growth with little momentum ({score}/100)"),
    ScoreRule(Dimension.GROWTH, 20, 40, "Slow growth trajectory ({score}/100)"),
)

AUDIENCE_RULES: Tuple[AudienceRule, ...] = (
    AudienceRule("Career-focused professionals", Dimension.ECONOMY,
                 (Threshold("economy", minimum=60),)),
    AudienceRule("Remote workers", Dimension.ECONOMY,
                 (Threshold("economy", minimum=60), Threshold("livability", minimum=60))),
    AudienceRule("Families", Dimension.LIVABILITY,
                 (Threshold("livability", minimum=60), Threshold("sustainability", minimum=60))),
    AudienceRule("Retirees", Dimension.LIVABILITY,
                 (Threshold("livability", minimum=70), Threshold("sustainability", minimum=70))),
    AudienceRule("Budget-conscious movers", Dimension.LIVABILITY,
                 (Threshold("costOfLivingIndex", below=100),)),
    AudienceRule("Environmentally conscious residents", Dimension.SUSTAINABILITY,
                 (Threshold("sustainability", minimum=70),)),
    AudienceRule("Students", Dimension.GROWTH,
                 (Threshold("growth", minimum=60), Threshold("livability", minimum=50))),
    AudienceRule("Entrepreneurs and startup founders", Dimension.GROWTH,
                 (Threshold("growth", minimum=60),)),
)

# (score >= 80, score >= 60) phrasing used in the personality narrative
TRAIT_PHRASES: Dict[Dimension, Tuple[str, str]] = {
    Dimension.ECONOMY: ("a thriving economy", "a solid economic base"),
    Dimension.LIVABILITY: ("an exceptional quality of life", "a comfortable quality of life"),
    Dimension.SUSTAINABILITY: ("outstanding environmental quality", "clean, healthy surroundings"),
    Dimension.GROWTH: ("rapid growth and momentum", "steady growth"),
}

GENERIC_STRENGTH_FILLERS: Tuple[str, ...] = (
    "Balanced urban characteristics",
    "Diverse community characteristics",
)
GENERIC_AUDIENCE_FILLERS: Tuple[str, ...] = (
    "Curious travelers",
    "Open-minded explorers",
)


# =============================================================================
# Signals
# =============================================================================


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def _dimension_scores(bundle: FeatureBundle) -> Dict[Dimension, Optional[float]]:
    return {d: _finite(s) for d, s in bundle.dimension_scores().items()}


def _cost_of_living(bundle: FeatureBundle) -> Optional[float]:
    if bundle.economy is not None and bundle.economy.costOfLivingIndex is not None:
        return _finite(bundle.economy.costOfLivingIndex)
    if bundle.livability is not None:
        return _finite(bundle.livability.costOfLivingIndex)
    return None


def _signals(bundle: FeatureBundle, scores: Dict[Dimension, Optional[float]]) -> Dict[str, Optional[float]]:
    signals: Dict[str, Optional[float]] = {d.value: s for d, s in scores.items()}
    signals["costOfLivingIndex"] = _cost_of_living(bundle)
    return signals


# =============================================================================
# Bounds
# =============================================================================


def _priority_index(dimension: Optional[Dimension]) -> int:
    if dimension is None:
        return len(DIMENSION_PRIORITY)
    return DIMENSION_PRIORITY.index(dimension)


def apply_list_bounds(
    entries: List[Tuple[str, Optional[Dimension]]],
    fillers: List[str],
    minimum: int,
    maximum: int,
) -> Tuple[List[str], List[str]]:
    """
    Bring a list of (text, dimension) entries within [minimum, maximum].

    Args:
        entries: Rule outputs with the dimension each belongs to
        fillers: Candidate fillers, in preference order
        minimum: Minimum list size; fillers are appended to reach it
        maximum: Maximum list size; lowest-priority entries are dropped

    Returns:
        (bounded list, fillers that were used)
    """
    ranked = sorted(entries, key=lambda entry: _priority_index(entry[1]))
    result = [text for text, _ in ranked][:maximum]

    used: List[str] = []
    for filler in fillers:
        if len(result) >= minimum:
            break
        if filler not in result:
            result.append(filler)
            used.append(filler)
    return result, used


def _strength_fillers(bundle: FeatureBundle) -> List[str]:
    fillers: List[str] = []
    population = bundle.population
    if population is not None and population > 0:
        if population >= LARGE_CITY_POPULATION:
            fillers.append("Major metropolitan area with a wide range of amenities")
        elif population >= SMALL_CITY_POPULATION:
            fillers.append("Mid-sized city with a distinct local character")
        else:
            fillers.append("Close-knit community atmosphere")
    if bundle.country is not None:
        fillers.append(f"Offers a window into everyday life in {bundle.country}")
    fillers.extend(GENERIC_STRENGTH_FILLERS)
    return fillers


def _audience_fillers(bundle: FeatureBundle) -> List[str]:
    fillers: List[str] = []
    population = bundle.population
    if population is not None and population > 0:
        if population >= LARGE_CITY_POPULATION:
            fillers.append("Big-city enthusiasts")
        elif population < SMALL_CITY_POPULATION:
            fillers.append("Those seeking a quieter pace of life")
        else:
            fillers.append("Urban lifestyle enthusiasts")
    fillers.extend(GENERIC_AUDIENCE_FILLERS)
    return fillers


def format_score(score: float) -> str:
    """
    Render a score for display, truncated to one decimal.

    Truncating rather than rounding keeps the shown value inside the band the
    rule matched on: 79.96 reads "79.9", never "80". Whole numbers drop the
    decimal ("85").
    """
    # round first so float noise (79.6 * 10 == 795.999...) does not drop a tenth
    truncated = math.floor(round(score * 10, 6)) / 10
    if truncated.is_integer():
        return f"{truncated:.0f}"
    return f"{truncated:.1f}"


def truncate_text(text: str, limit: int = MAX_PERSONALITY_LENGTH) -> str:
    """Truncate on a word boundary, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    cut = text[:limit - 3].rsplit(" ", 1)[0].rstrip(",;:")
    return cut + "..."


# =============================================================================
# Rule Passes
# =============================================================================


def _evaluate_score_rules(
    rules: Tuple[ScoreRule, ...],
    scores: Dict[Dimension, Optional[float]],
    category: RuleCategory,
    applied: List[AppliedRule],
) -> List[Tuple[str, Optional[Dimension]]]:
    entries: List[Tuple[str, Optional[Dimension]]] = []
    for rule in rules:
        score = scores[rule.dimension]
        if rule.matches(score):
            text = rule.template.format(score=format_score(score))
            entries.append((text, rule.dimension))
            applied.append(AppliedRule(category=category, condition=rule.describe(), output=text))
    return entries


def _evaluate_audience_rules(
    signals: Dict[str, Optional[float]],
    applied: List[AppliedRule],
) -> List[Tuple[str, Optional[Dimension]]]:
    entries: List[Tuple[str, Optional[Dimension]]] = []
    for rule in AUDIENCE_RULES:
        if rule.matches(signals):
            entries.append((rule.segment, rule.priority))
            applied.append(AppliedRule(category=RuleCategory.AUDIENCE, condition=rule.describe(), output=rule.segment))
    return entries


def _trait_phrase(dimension: Dimension, score: float) -> str:
    excellent, strong = TRAIT_PHRASES[dimension]
    return excellent if score >= 80 else strong


def build_personality(
    bundle: FeatureBundle,
    scores: Dict[Dimension, Optional[float]],
    applied: Optional[List[AppliedRule]] = None,
) -> str:
    """
    Compose the personality narrative.

    One primary trait (highest score >= 60, ties broken by dimension
    priority), up to two supporting traits, and at most one trade-off.
    """
    name = bundle.city_name or "This city"
    location = f"{name}, {bundle.country}" if bundle.country else name

    present = [(d, s) for d, s in scores.items() if s is not None]
    ranked = sorted(present, key=lambda item: (-item[1], _priority_index(item[0])))
    strong = [(d, s) for d, s in ranked if s >= STRONG_SCORE]

    sentences: List[str] = []
    if strong:
        primary, primary_score = strong[0]
        sentences.append(f"{location} is defined by {_trait_phrase(primary, primary_score)}.")
        supporting = [_trait_phrase(d, s) for d, s in strong[1:3]]
        if supporting:
            sentences.append(f"It also offers {' and '.join(supporting)}.")
        if applied is not None:
            applied.append(AppliedRule(
                category=RuleCategory.PERSONALITY,
                condition=f"primary trait: {primary.value} >= {STRONG_SCORE:g}",
                output=_trait_phrase(primary, primary_score),
            ))
    elif present:
        sentences.append(f"{location} has a mixed profile without a single standout dimension.")
    else:
        sentences.append(f"{location} has a profile that is still taking shape, with few measured indicators.")

    cost = _cost_of_living(bundle)
    sustainability = scores[Dimension.SUSTAINABILITY]
    trade_off = None
    if cost is not None and cost >= HIGH_COST_OF_LIVING:
        trade_off = f"The trade-off is a high cost of living (index {cost:.0f})."
    elif sustainability is not None and sustainability < LOW_SUSTAINABILITY:
        trade_off = f"The trade-off is environmental quality that lags behind ({format_score(sustainability)}/100)."
    if trade_off is not None:
        sentences.append(trade_off)
        if applied is not None:
            applied.append(AppliedRule(category=RuleCategory.PERSONALITY, condition="trade-off", output=trade_off))

    return truncate_text(" ".join(sentences))


# =============================================================================
# Entry Points
# =============================================================================


def run_inference(bundle: Optional[FeatureBundle]) -> InferenceInsights:
    """
    Run the rule tables over a feature bundle.

    Args:
        bundle: Feature bundle that passed the quality checker and guard

    Returns:
        InferenceInsights within the documented bounds
    """
    if bundle is None:
        bundle = FeatureBundle()

    scores = _dimension_scores(bundle)
    applied: List[AppliedRule] = []

    strength_entries = _evaluate_score_rules(STRENGTH_RULES, scores, RuleCategory.STRENGTH, applied)
    weakness_entries = _evaluate_score_rules(WEAKNESS_RULES, scores, RuleCategory.WEAKNESS, applied)
    audience_entries = _evaluate_audience_rules(_signals(bundle, scores), applied)

    strengths, strength_fillers = apply_list_bounds(
        strength_entries, _strength_fillers(bundle), MIN_STRENGTHS, MAX_STRENGTHS
    )
    weaknesses, _ = apply_list_bounds(weakness_entries, [], 0, MAX_WEAKNESSES)
    audience, audience_fillers = apply_list_bounds(
        audience_entries, _audience_fillers(bundle), MIN_AUDIENCE, MAX_AUDIENCE
    )
    for filler in strength_fillers + audience_fillers:
        applied.append(AppliedRule(category=RuleCategory.FILLER, condition="below minimum list size", output=filler))

    personality = build_personality(bundle, scores, applied)

    logger.debug(
        f"Inference for {bundle.city_name or 'unnamed city'}: {len(strengths)} strengths, "
        f"{len(weaknesses)} weaknesses, {len(audience)} audience segments, {len(applied)} rules applied"
    )

    return InferenceInsights(
        personality=personality,
        strengths=strengths,
        weaknesses=weaknesses,
        audienceSegments=audience,
        dimensionScores={d.value: s for d, s in scores.items()},
        appliedRules=applied,
    )


def validate_output(insights: InferenceInsights) -> Tuple[bool, List[str]]:
    """
    Re-check an insights record against the output bounds.

    Returns:
        (valid, errors)
    """
    errors: List[str] = []
    if not insights.personality.strip():
        errors.append("personality is empty")
    if len(insights.personality) > MAX_PERSONALITY_LENGTH:
        errors.append(f"personality exceeds {MAX_PERSONALITY_LENGTH} characters")
    if not MIN_STRENGTHS <= len(insights.strengths) <= MAX_STRENGTHS:
        errors.append(f"strengths count {len(insights.strengths)} outside {MIN_STRENGTHS}-{MAX_STRENGTHS}")
    if len(insights.weaknesses) > MAX_WEAKNESSES:
        errors.append(f"weaknesses count {len(insights.weaknesses)} exceeds {MAX_WEAKNESSES}")
    if not MIN_AUDIENCE <= len(insights.audienceSegments) <= MAX_AUDIENCE:
        errors.append(f"audience count {len(insights.audienceSegments)} outside {MIN_AUDIENCE}-{MAX_AUDIENCE}")
    for name in ("strengths", "weaknesses", "audienceSegments"):
        values = getattr(insights, name)
        if len(set(values)) != len(values):
            errors.append(f"{name} contains duplicates")
    return not errors, errors
