"""
Enumeration definitions for the City Insights service.

All enums inherit from both `str` and `Enum` to ensure JSON serialization compatibility
with Pydantic models, enabling automatic serialization/deserialization in API responses.
"""

from enum import Enum


class Dimension(str, Enum):
    """
    The four scored dimensions of a city profile.

    Declaration order is the priority order used whenever a bounded list
    has to drop entries: economy > livability > sustainability > growth.
    """
    ECONOMY = "economy"
    LIVABILITY = "livability"
    SUSTAINABILITY = "sustainability"
    GROWTH = "growth"


class ScoreTier(str, Enum):
    """
    Qualitative band for a 0-100 dimension score.

    - excellent: >= 80
    - good: >= 60
    - average: >= 40
    - below-average: >= 20
    - poor: < 20
    - unavailable: the score could not be computed
    """
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    BELOW_AVERAGE = "below-average"
    POOR = "poor"
    UNAVAILABLE = "unavailable"


class ConfidenceLevel(str, Enum):
    """
    Banded overall confidence.

    - HIGH: overall confidence >= 80
    - MEDIUM: overall confidence >= 60
    - LOW: anything below 60
    """
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class FallbackTier(str, Enum):
    """
    Degradation tier of a fallback response, ordered from best to worst.

    - TIER_1_PARTIAL_DATA: some real scores exist and were reused
    - TIER_2_METADATA_ONLY: only identifying metadata (name, country, population) was usable
    - TIER_3_SAFE_DEFAULT: nothing usable; generic, data-free content
    """
    TIER_1_PARTIAL_DATA = "TIER_1_PARTIAL_DATA"
    TIER_2_METADATA_ONLY = "TIER_2_METADATA_ONLY"
    TIER_3_SAFE_DEFAULT = "TIER_3_SAFE_DEFAULT"

    @property
    def severity(self) -> int:
        """Numeric severity: 1 (mild) to 3 (severe)."""
        return {
            FallbackTier.TIER_1_PARTIAL_DATA: 1,
            FallbackTier.TIER_2_METADATA_ONLY: 2,
            FallbackTier.TIER_3_SAFE_DEFAULT: 3,
        }[self]


class FallbackReason(str, Enum):
    """
    Why the pipeline produced a degraded response.

    - INCOMPLETE_DATA: quality check failed or completeness too low
    - LOW_CONFIDENCE: inference ran but overall confidence fell below threshold
    - API_UNAVAILABLE: upstream data sources were reported down
    - INFERENCE_ERROR: an unexpected exception occurred inside the pipeline
    - QUALITY_GUARD_BLOCKED: the pre-inference guard found suspicious input
    """
    INCOMPLETE_DATA = "INCOMPLETE_DATA"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    API_UNAVAILABLE = "API_UNAVAILABLE"
    INFERENCE_ERROR = "INFERENCE_ERROR"
    QUALITY_GUARD_BLOCKED = "QUALITY_GUARD_BLOCKED"


class RuleCategory(str, Enum):
    """Category of an inference rule recorded in the decision audit log."""
    STRENGTH = "STRENGTH"
    WEAKNESS = "WEAKNESS"
    AUDIENCE = "AUDIENCE"
    PERSONALITY = "PERSONALITY"
    FILLER = "FILLER"


class DataAvailability(str, Enum):
    """Availability of an upstream data source or of one dimension's data."""
    AVAILABLE = "available"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"
