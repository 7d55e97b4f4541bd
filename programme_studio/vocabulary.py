"""Vocabulary rules keyed by document field name.

Closed fields must hold one of a fixed set of values; open fields carry a
suggested list that is never enforced.
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Tuple, get_args

from .models import (
    AIRisk,
    Bloom,
    ContactHours,
    DEFAULT_CAPABILITY_TAGS,
    EVIDENCE_TYPES,
    Participation,
    RiskCategory,
    UDL_GUIDELINES,
    UDLDimension,
)

BLOOM_LEVELS = get_args(Bloom)
RISK_CATEGORIES = get_args(RiskCategory)
AI_RISK_TIERS = get_args(AIRisk)
PARTICIPATION = get_args(Participation)
UDL_DIMENSIONS = get_args(UDLDimension)
CONTACT_HOUR_BUCKETS = tuple(f.alias or name for name, f in ContactHours.model_fields.items())


@dataclass(frozen=True)
class VocabularyRule:
    kind: Literal["closed", "open"]
    values: Tuple[str, ...]


FIELD_RULES: Dict[str, VocabularyRule] = {
    "level": VocabularyRule("closed", BLOOM_LEVELS),
    "category": VocabularyRule("closed", RISK_CATEGORIES),
    "aiRisk": VocabularyRule("closed", AI_RISK_TIERS),
    "individualOrGroup": VocabularyRule("closed", PARTICIPATION),
    "dimension": VocabularyRule("closed", UDL_DIMENSIONS),
    "contactHours": VocabularyRule("closed", CONTACT_HOUR_BUCKETS),
    "tags": VocabularyRule("open", tuple(DEFAULT_CAPABILITY_TAGS)),
    "type": VocabularyRule("open", tuple(EVIDENCE_TYPES)),
}


def rule_for(field: str) -> Optional[VocabularyRule]:
    return FIELD_RULES.get(field)


def is_allowed(field: str, value: Any) -> bool:
    rule = FIELD_RULES.get(field)
    if rule is None or rule.kind == "open":
        return True
    return value in rule.values


def suggestions(field: str) -> Tuple[str, ...]:
    rule = FIELD_RULES.get(field)
    return rule.values if rule else ()


def is_udl_pair(dimension: Any, sublevel: Any) -> bool:
    return isinstance(dimension, str) and sublevel in UDL_GUIDELINES.get(dimension, ())
