"""Entity records of a programme design document.

The document itself stays a plain JSON-shaped dict. These models are the
boundary: anything a designer adds or edits is parsed through one of them
and stored back with ``to_doc()``, so closed vocabularies are checked and
scores are clamped before they reach the document.
"""

import math
import time
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# ---- Types ----
Bloom = Literal["Remember", "Understand", "Apply", "Analyse", "Evaluate", "Create"]
RiskCategory = Literal["Academic", "Operational", "Market", "Other"]
AIRisk = Literal["low", "medium", "high"]
Participation = Literal["individual", "group"]
UDLDimension = Literal["representation", "actionExpression", "engagement"]

# UDL Guidelines 3.0: three guidelines per dimension
UDL_GUIDELINES: Dict[str, tuple] = {
    "representation": ("Perception", "Language", "BuildingKnowledge"),
    "actionExpression": ("Interaction", "Expression", "StrategyDevelopment"),
    "engagement": ("WelcomingIdentities", "SustainingPersistence", "EmotionalCapacity"),
}

DEFAULT_CAPABILITY_TAGS = [
    "Strategic",
    "Leadership",
    "Analytics",
    "Operations",
    "Innovation",
    "Ethics",
    "Sustainability",
    "Digital",
]

EVIDENCE_TYPES = [
    "Capstone Project",
    "Workplace Intervention",
    "Simulation",
    "Portfolio",
    "Consultancy Report",
    "Viva",
    "Case Study Analysis",
    "Research Dissertation",
]


def generate_id(prefix: str = "id") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


def parse_int(value: Any, default: int) -> int:
    """Lenient integer parse for form and import input; never returns NaN-like junk."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                value = float(value)
            except ValueError:
                return default
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    return default


def clamp(value: Any, low: int, high: Optional[int], default: int) -> int:
    number = parse_int(value, default)
    if number < low:
        return low
    if high is not None and number > high:
        return high
    return number


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        text = str(item).strip()
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return out


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_doc(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---- Programme level ----
class Evidence(Record):
    id: str = Field(default_factory=lambda: generate_id("ev"))
    type: str
    individual_or_group: Participation = "individual"
    authenticity_score: int = 3
    workplace_transfer_score: int = 3
    notes: str = ""

    @field_validator("authenticity_score", "workplace_transfer_score", mode="before")
    @classmethod
    def score_range(cls, v):
        return clamp(v, 1, 5, 3)

    @field_validator("type")
    @classmethod
    def type_present(cls, v):
        if not v.strip():
            raise ValueError("Evidence type cannot be empty")
        return v.strip()


class ExitCapability(Record):
    id: str = Field(default_factory=lambda: generate_id("exitcap"))
    text: str
    tags: List[str] = Field(default_factory=list)
    evidence: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def text_present(cls, v):
        if not v.strip():
            raise ValueError("Capability statement cannot be empty")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v):
        return _dedupe(v)


class PLO(Record):
    id: str = Field(default_factory=lambda: generate_id("plo"))
    statement: str
    level: Bloom = "Apply"

    @field_validator("statement")
    @classmethod
    def statement_present(cls, v):
        if not v.strip():
            raise ValueError("PLO statement cannot be empty")
        return v.strip()


class AssessmentItem(Record):
    id: str = Field(default_factory=lambda: generate_id("assess"))
    title: str = "New Assessment"
    type: str = "project"
    evidence_outputs: List[str] = Field(default_factory=list)
    weighting_percent: int = 0
    individual_or_group: Participation = "individual"
    authenticity: int = 3
    ai_risk: AIRisk = "medium"
    ai_risk_design_mitigation: str = ""
    scaffold_steps: List[str] = Field(default_factory=list)
    feedback_moments: List[str] = Field(default_factory=list)

    @field_validator("weighting_percent", mode="before")
    @classmethod
    def weighting_range(cls, v):
        return clamp(v, 0, 100, 0)

    @field_validator("authenticity", mode="before")
    @classmethod
    def authenticity_range(cls, v):
        return clamp(v, 1, 5, 3)


class Risk(Record):
    id: str = Field(default_factory=lambda: generate_id("risk"))
    category: RiskCategory = "Academic"
    risk: str = "Risk statement"
    assumption: str = "Assumption"
    mitigation: str = "Mitigation"


class ContactHours(Record):
    lectures: int = 0
    tutorials: int = 0
    labs: int = 0
    seminars: int = 0
    workshops: int = 0
    other: int = 0
    directed_elearning: Optional[int] = None
    independent_learning: Optional[int] = None

    @field_validator("*", mode="before")
    @classmethod
    def non_negative(cls, v, info):
        if v is None and info.field_name in ("directed_elearning", "independent_learning"):
            return None
        return clamp(v, 0, None, 0)

    def to_doc(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DeliveryProfile(Record):
    delivery_mode: int = 50
    sync_async: int = 50
    total_effort_hours: int = 1500
    contact_hours: ContactHours = Field(default_factory=ContactHours)

    @field_validator("delivery_mode", "sync_async", mode="before")
    @classmethod
    def slider_range(cls, v):
        return clamp(v, 0, 100, 50)

    def to_doc(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude={"contact_hours"})
        doc["contactHours"] = self.contact_hours.to_doc()
        return doc


class PresencePalette(Record):
    teaching: List[str] = Field(default_factory=list)
    social: List[str] = Field(default_factory=list)
    cognitive: List[str] = Field(default_factory=list)


class LearningExperience(Record):
    description: str = "High-level learning rhythm"
    available_presence: PresencePalette = Field(default_factory=PresencePalette)
    open_text: str = ""


# ---- Module level ----
class ModuleOutcome(Record):
    id: str = Field(default_factory=lambda: generate_id("modlo"))
    statement: str
    level: Bloom = "Apply"


class ModuleAssessment(Record):
    id: str = Field(default_factory=lambda: generate_id("modassess"))
    name: str
    type: str = "assignment"
    weight: int = 0
    description: str = ""
    ai_risk: AIRisk = "medium"
    ai_risk_design_mitigation: str = ""

    @field_validator("name")
    @classmethod
    def name_present(cls, v):
        if not v.strip():
            raise ValueError("Assessment name is required")
        return v.strip()

    @field_validator("weight", mode="before")
    @classmethod
    def weight_range(cls, v):
        return clamp(v, 0, 100, 0)


class AssessmentEvidence(Record):
    id: str = Field(default_factory=lambda: generate_id("ev"))
    description: str
    simulated_performance: str = ""
    ai_risk: AIRisk = "medium"
    scaffold_steps: List[str] = Field(default_factory=list)
    linked_assessment_id: Optional[str] = None

    @field_validator("description")
    @classmethod
    def description_present(cls, v):
        if not v.strip():
            raise ValueError("Assessment evidence description is required")
        return v.strip()

    @field_validator("scaffold_steps", mode="before")
    @classmethod
    def split_steps(cls, v):
        # the editor submits scaffold steps as one comma separated line
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("linked_assessment_id", mode="before")
    @classmethod
    def blank_link(cls, v):
        return v or None


class LearningActivity(Record):
    id: str = Field(default_factory=lambda: generate_id("act"))
    description: str
    prepares_for_evidence_id: Optional[str] = None
    timing: str = ""

    @field_validator("description")
    @classmethod
    def description_present(cls, v):
        if not v.strip():
            raise ValueError("Activity description is required")
        return v.strip()


class UDLEvidence(Record):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    dimension: UDLDimension
    sublevel: str
    evidence: str = ""

    @model_validator(mode="after")
    def known_guideline(self):
        if self.sublevel not in UDL_GUIDELINES[self.dimension]:
            raise ValueError(f"Unknown UDL guideline '{self.sublevel}' for dimension '{self.dimension}'")
        return self

    @property
    def key(self) -> tuple:
        return (self.dimension, self.sublevel)


class ModuleLearningExperience(Record):
    description: str = ""
    weekly_rhythm: List[Any] = Field(default_factory=list)
    notes: str = ""


class Module(Record):
    id: str = Field(default_factory=lambda: generate_id("mod"))
    title: str = "New Module"
    credits: int = 10
    semester: int = 1
    learning_outcomes: List[ModuleOutcome] = Field(default_factory=list)
    assessments: List[ModuleAssessment] = Field(default_factory=list)
    assessment_evidence: List[AssessmentEvidence] = Field(default_factory=list)
    learning_activities: List[LearningActivity] = Field(default_factory=list)
    supports_exit_capabilities: List[str] = Field(default_factory=list)
    learning_experience: ModuleLearningExperience = Field(default_factory=ModuleLearningExperience)
    udl_evidence: List[UDLEvidence] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def title_fallback(cls, v):
        return str(v).strip() if v and str(v).strip() else "Untitled Module"

    @field_validator("credits", mode="before")
    @classmethod
    def credits_fallback(cls, v):
        return parse_int(v, 10) or 10

    @field_validator("semester", mode="before")
    @classmethod
    def semester_fallback(cls, v):
        return parse_int(v, 1) or 1

    @field_validator("supports_exit_capabilities")
    @classmethod
    def unique_links(cls, v):
        return _dedupe(v)
