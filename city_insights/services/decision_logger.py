"""
Decision Audit Logger

Records which rules produced an inference so a reviewer can reconstruct why a
city was described the way it was. Audit entries are written to the standard
logging system only; persisting them is left to whatever log pipeline the
deployment ships logs to.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from city_insights.models.enums import RuleCategory
from city_insights.models.schemas import (
    AppliedRule,
    ConfidenceResult,
    FeatureBundle,
    InferenceInsights,
    InsightResult,
    QualityResult,
)


logger = logging.getLogger(__name__)


@dataclass
class AuditLog:
    """One audited inference."""
    audit_id: str
    timestamp: datetime
    city_name: str
    country: Optional[str]
    pipeline_version: str
    completeness: float
    confidence: float
    confidence_level: str
    applied_rules: List[AppliedRule] = field(default_factory=list)

    def rules_in(self, category: RuleCategory) -> List[AppliedRule]:
        return [rule for rule in self.applied_rules if rule.category == category]

    def to_summary(self) -> str:
        return (
            f"Inference audit [{self.audit_id}] {self.city_name}: "
            f"version={self.pipeline_version}, completeness={self.completeness:.1f}%, "
            f"confidence={self.confidence:.1f} ({self.confidence_level}), "
            f"strengths={len(self.rules_in(RuleCategory.STRENGTH))}, "
            f"weaknesses={len(self.rules_in(RuleCategory.WEAKNESS))}, "
            f"audience={len(self.rules_in(RuleCategory.AUDIENCE))}, "
            f"fillers={len(self.rules_in(RuleCategory.FILLER))}"
        )


def log_inference(
    bundle: FeatureBundle,
    insights: InferenceInsights,
    quality: QualityResult,
    confidence: ConfidenceResult,
    result: InsightResult,
) -> AuditLog:
    """
    Write an audit entry for a successful inference.

    Args:
        bundle: Input feature bundle
        insights: Rule-engine output, carrying the rules that fired
        quality: Quality Checker result
        confidence: Confidence Calculator result
        result: The caller-facing result that was returned

    Returns:
        The AuditLog that was written
    """
    audit = AuditLog(
        audit_id=str(uuid.uuid4()),
        timestamp=datetime.now(timezone.utc),
        city_name=bundle.city_name or "unnamed city",
        country=bundle.country,
        pipeline_version=result.pipelineVersion,
        completeness=quality.completenessPercentage,
        confidence=confidence.overallConfidence,
        confidence_level=confidence.level.value,
        applied_rules=list(insights.appliedRules),
    )

    logger.info(audit.to_summary())
    for rule in audit.applied_rules:
        logger.debug(f"  [{audit.audit_id}] {rule.category.value}: {rule.condition} -> {rule.output}")
    return audit
