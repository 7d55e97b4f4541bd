"""Designer edits applied to a programme document.

Each operation takes the document explicitly, changes it in place and
returns the record it wrote. New and edited records are parsed through the
entity models first. Removing a record never touches records that refer to
it; the checker reports those references instead.
"""

import copy
import json
from importlib import resources
from typing import Any, Dict, List, Optional

from .delivery import refresh_delivery_profile
from .errors import EntityNotFound
from .models import (
    PLO,
    AssessmentEvidence,
    AssessmentItem,
    Evidence,
    ExitCapability,
    LearningActivity,
    Module,
    ModuleAssessment,
    Risk,
    UDLEvidence,
    generate_id,
    parse_int,
)
from .template import DEFAULT_CREDITS, DEFAULT_NFQ_LEVEL, DATA_PACKAGE

PATTERNS_FILE = "patterns.json"

CANVAS_TEXT_FIELDS = (
    "programmeTitle",
    "audience",
    "audienceConstraints",
    "valueProposition",
    "deliveryMode",
    "deliveryDuration",
    "deliveryStructure",
)


def _collection(owner: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = owner.get(key)
    if not isinstance(items, list):
        items = []
        owner[key] = items
    return items


def _index(items: List[Dict[str, Any]], entity_id: str, kind: str) -> int:
    for i, item in enumerate(items):
        if isinstance(item, dict) and item.get("id") == entity_id:
            return i
    raise EntityNotFound(kind, entity_id)


def _replace(items, entity_id, kind, model, data):
    i = _index(items, entity_id, kind)
    record = model.model_validate({**items[i], **data, "id": entity_id}).to_doc()
    items[i] = record
    return record


def _remove(items: List[Dict[str, Any]], entity_id: str) -> bool:
    kept = [item for item in items if not (isinstance(item, dict) and item.get("id") == entity_id)]
    removed = len(kept) != len(items)
    items[:] = kept
    return removed


def find_module(doc: Dict[str, Any], module_id: str) -> Dict[str, Any]:
    modules = _collection(doc, "modules")
    return modules[_index(modules, module_id, "Module")]


# ---- Canvas ----
def update_canvas(doc: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
    for field in CANVAS_TEXT_FIELDS:
        if field in values:
            doc[field] = str(values[field] or "")
    if "credits" in values:
        doc["credits"] = parse_int(values["credits"], DEFAULT_CREDITS) or DEFAULT_CREDITS
    if "nfqLevel" in values:
        doc["nfqLevel"] = parse_int(values["nfqLevel"], DEFAULT_NFQ_LEVEL) or DEFAULT_NFQ_LEVEL
    if "differentiators" in values:
        doc["differentiators"] = [str(d) for d in values["differentiators"] or []]
    if "learningExperienceDescription" in values:
        experience = doc.get("learningExperience")
        if not isinstance(experience, dict):
            experience = doc["learningExperience"] = {}
        experience["description"] = str(values["learningExperienceDescription"] or "")
    refresh_delivery_profile(doc)
    return doc


# ---- Exit capabilities & evidence ----
def add_exit_capability(doc: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    record = ExitCapability.model_validate({**data, "evidence": []}).to_doc()
    _collection(doc, "exitCapabilities").append(record)
    return record


def update_exit_capability(doc: Dict[str, Any], cap_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    # evidence is edited through its own operations
    changes = {k: v for k, v in data.items() if k in ("text", "tags")}
    return _replace(_collection(doc, "exitCapabilities"), cap_id, "Exit capability", ExitCapability, changes)


def remove_exit_capability(doc: Dict[str, Any], cap_id: str) -> bool:
    return _remove(_collection(doc, "exitCapabilities"), cap_id)


def _capability(doc, cap_id):
    capabilities = _collection(doc, "exitCapabilities")
    return capabilities[_index(capabilities, cap_id, "Exit capability")]


def save_evidence(
    doc: Dict[str, Any], cap_id: str, data: Dict[str, Any], evidence_id: Optional[str] = None
) -> Dict[str, Any]:
    evidence = _collection(_capability(doc, cap_id), "evidence")
    if evidence_id:
        i = _index(evidence, evidence_id, "Evidence")
        record = Evidence.model_validate({**data, "id": evidence_id}).to_doc()
        evidence[i] = record
    else:
        record = Evidence.model_validate({k: v for k, v in data.items() if k != "id"}).to_doc()
        evidence.append(record)
    return record


def remove_evidence(doc: Dict[str, Any], cap_id: str, evidence_id: str) -> bool:
    return _remove(_collection(_capability(doc, cap_id), "evidence"), evidence_id)


# ---- PLOs, portfolio, risks ----
def add_plo(doc: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    record = PLO.model_validate({k: v for k, v in data.items() if k != "id"}).to_doc()
    _collection(doc, "draftPLOs").append(record)
    return record


def update_plo(doc: Dict[str, Any], plo_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return _replace(_collection(doc, "draftPLOs"), plo_id, "PLO", PLO, data)


def remove_plo(doc: Dict[str, Any], plo_id: str) -> bool:
    return _remove(_collection(doc, "draftPLOs"), plo_id)


def draft_plos_from_capabilities(doc: Dict[str, Any], limit: int = 4) -> bool:
    capabilities = [c for c in _collection(doc, "exitCapabilities") if isinstance(c, dict) and c.get("text")]
    if not capabilities:
        return False
    doc["draftPLOs"] = [PLO(statement=cap["text"], level="Analyse").to_doc() for cap in capabilities[:limit]]
    return True


def add_assessment(doc: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    record = AssessmentItem.model_validate({k: v for k, v in (data or {}).items() if k != "id"}).to_doc()
    _collection(doc, "assessmentPortfolio").append(record)
    return record


def update_assessment(doc: Dict[str, Any], assessment_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return _replace(_collection(doc, "assessmentPortfolio"), assessment_id, "Assessment", AssessmentItem, data)


def remove_assessment(doc: Dict[str, Any], assessment_id: str) -> bool:
    return _remove(_collection(doc, "assessmentPortfolio"), assessment_id)


def load_patterns() -> List[Dict[str, Any]]:
    raw = json.loads(resources.files(DATA_PACKAGE).joinpath(PATTERNS_FILE).read_text(encoding="utf-8"))
    return raw.get("assessmentPatterns", [])


def insert_pattern(
    doc: Dict[str, Any], pattern_id: str, patterns: Optional[List[Dict[str, Any]]] = None
) -> Optional[Dict[str, Any]]:
    for pattern in patterns if patterns is not None else load_patterns():
        if pattern.get("id") == pattern_id:
            record = {**copy.deepcopy(pattern.get("template", {})), "id": generate_id("assess")}
            _collection(doc, "assessmentPortfolio").append(record)
            return record
    return None


def add_risk(doc: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    record = Risk.model_validate({k: v for k, v in (data or {}).items() if k != "id"}).to_doc()
    _collection(doc, "risksAndAssumptions").append(record)
    return record


def update_risk(doc: Dict[str, Any], risk_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return _replace(_collection(doc, "risksAndAssumptions"), risk_id, "Risk", Risk, data)


def remove_risk(doc: Dict[str, Any], risk_id: str) -> bool:
    return _remove(_collection(doc, "risksAndAssumptions"), risk_id)


# ---- Modules ----
def add_module(doc: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    modules = _collection(doc, "modules")
    fields = {"semester": len(modules) + 1, **{k: v for k, v in (data or {}).items() if k != "id"}}
    record = Module.model_validate(fields).to_doc()
    modules.append(record)
    return record


def update_module(doc: Dict[str, Any], module_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply submitted fields only; collections not submitted keep their stored form."""
    modules = _collection(doc, "modules")
    i = _index(modules, module_id, "Module")
    parsed = Module.model_validate({**data, "id": module_id}).to_doc()
    modules[i] = {**modules[i], **{key: parsed[key] for key in data if key in parsed}}
    return modules[i]


def remove_module(doc: Dict[str, Any], module_id: str) -> bool:
    return _remove(_collection(doc, "modules"), module_id)


def link_exit_capability(doc: Dict[str, Any], module_id: str, cap_id: str) -> List[str]:
    links = _collection(find_module(doc, module_id), "supportsExitCapabilities")
    if cap_id not in links:
        links.append(cap_id)
    return links


def unlink_exit_capability(doc: Dict[str, Any], module_id: str, cap_id: str) -> List[str]:
    links = _collection(find_module(doc, module_id), "supportsExitCapabilities")
    links[:] = [c for c in links if c != cap_id]
    return links


def save_module_assessment(
    doc: Dict[str, Any], module_id: str, data: Dict[str, Any], assessment_id: Optional[str] = None
) -> Dict[str, Any]:
    assessments = _collection(find_module(doc, module_id), "assessments")
    if assessment_id:
        return _replace(assessments, assessment_id, "Module assessment", ModuleAssessment, data)
    record = ModuleAssessment.model_validate({k: v for k, v in data.items() if k != "id"}).to_doc()
    assessments.append(record)
    return record


def remove_module_assessment(doc: Dict[str, Any], module_id: str, assessment_id: str) -> bool:
    return _remove(_collection(find_module(doc, module_id), "assessments"), assessment_id)


def save_assessment_evidence(
    doc: Dict[str, Any], module_id: str, data: Dict[str, Any], evidence_id: Optional[str] = None
) -> Dict[str, Any]:
    module = find_module(doc, module_id)
    fields = {k: v for k, v in data.items() if k != "id"}
    linked_id = fields.get("linkedAssessmentId")
    if linked_id:
        for assessment in _collection(module, "assessments"):
            if assessment.get("id") != linked_id:
                continue
            # an empty description borrows from the linked assessment
            if not str(fields.get("description") or "").strip():
                fields["description"] = (
                    f"{assessment.get('name')} ({assessment.get('type')}) - Weight: {assessment.get('weight')}%"
                )
            if not str(fields.get("simulatedPerformance") or "").strip():
                fields["simulatedPerformance"] = (
                    assessment.get("description") or f"Performance demonstrated through {assessment.get('type')}"
                )
            break

    evidence = _collection(module, "assessmentEvidence")
    if evidence_id:
        i = _index(evidence, evidence_id, "Assessment evidence")
        record = AssessmentEvidence.model_validate({**fields, "id": evidence_id}).to_doc()
        evidence[i] = record
    else:
        record = AssessmentEvidence.model_validate(fields).to_doc()
        evidence.append(record)
    return record


def remove_assessment_evidence(doc: Dict[str, Any], module_id: str, evidence_id: str) -> bool:
    return _remove(_collection(find_module(doc, module_id), "assessmentEvidence"), evidence_id)


def save_learning_activity(
    doc: Dict[str, Any], module_id: str, data: Dict[str, Any], activity_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Store an activity only when it prepares for evidence this module already has."""
    module = find_module(doc, module_id)
    evidence_ids = {
        ev["id"]
        for ev in _collection(module, "assessmentEvidence")
        if isinstance(ev, dict) and isinstance(ev.get("id"), str)
    }
    target = data.get("preparesForEvidenceId")
    if not isinstance(target, str) or target not in evidence_ids:
        return None

    activities = _collection(module, "learningActivities")
    if activity_id:
        i = _index(activities, activity_id, "Learning activity")
        record = LearningActivity.model_validate({**data, "id": activity_id}).to_doc()
        activities[i] = record
    else:
        record = LearningActivity.model_validate({k: v for k, v in data.items() if k != "id"}).to_doc()
        activities.append(record)
    return record


def remove_learning_activity(doc: Dict[str, Any], module_id: str, activity_id: str) -> bool:
    return _remove(_collection(find_module(doc, module_id), "learningActivities"), activity_id)


# ---- UDL ----
def set_udl_evidence(
    doc: Dict[str, Any], module_id: str, dimension: str, sublevel: str, evidence: str = ""
) -> Dict[str, Any]:
    """Upsert on (dimension, sublevel); the latest write wins."""
    record = UDLEvidence(dimension=dimension, sublevel=sublevel, evidence=evidence).to_doc()
    items = _collection(find_module(doc, module_id), "udlEvidence")
    kept, placed = [], False
    for item in items:
        if isinstance(item, dict) and (item.get("dimension"), item.get("sublevel")) == (dimension, sublevel):
            if not placed:
                kept.append(record)
                placed = True
            continue
        kept.append(item)
    if not placed:
        kept.append(record)
    items[:] = kept
    return record


def remove_udl_evidence(doc: Dict[str, Any], module_id: str, dimension: str, sublevel: str) -> bool:
    items = _collection(find_module(doc, module_id), "udlEvidence")
    kept = [
        item
        for item in items
        if not (isinstance(item, dict) and (item.get("dimension"), item.get("sublevel")) == (dimension, sublevel))
    ]
    removed = len(kept) != len(items)
    items[:] = kept
    return removed
