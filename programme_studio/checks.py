"""Read-only diagnostics over a programme document.

Every function here is recomputed from the document on each call and never
writes to it. Dangling references are reported, not repaired.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

from .models import parse_int
from .vocabulary import is_allowed, is_udl_pair

AlignmentLookup = Callable[[str, str], bool]

OVER_RELIANCE_PERCENT = 60


def _records(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _short(text: Any, limit: int) -> str:
    return str(text or "")[:limit]


def outcome_text(plo: Dict[str, Any]) -> str:
    return plo.get("statement") or plo.get("text") or ""


# ---- Alignment ----
class AlignmentReport(BaseModel):
    unassessed_outcomes: List[str]
    unmapped_assessments: List[str]

    @property
    def warnings(self) -> List[str]:
        return self.unassessed_outcomes + self.unmapped_assessments


def check_alignment(doc: Dict[str, Any], is_aligned: AlignmentLookup) -> AlignmentReport:
    plos = _records(doc.get("draftPLOs"))
    assessments = _records(doc.get("assessmentPortfolio"))

    aligned_plos, aligned_assessments = set(), set()
    for plo in plos:
        for assessment in assessments:
            if is_aligned(plo.get("id"), assessment.get("id")):
                aligned_plos.add(plo.get("id"))
                aligned_assessments.add(assessment.get("id"))

    return AlignmentReport(
        unassessed_outcomes=[
            f"Outcome not assessed: {_short(outcome_text(plo), 60)}"
            for plo in plos
            if plo.get("id") not in aligned_plos
        ],
        unmapped_assessments=[
            f"Assessment not mapped: {_short(a.get('title'), 60)}"
            for a in assessments
            if a.get("id") not in aligned_assessments
        ],
    )


# ---- Backward design ----
def check_module(module: Dict[str, Any], exit_capability_ids: Optional[Iterable[str]] = None) -> List[str]:
    """Backward-design warnings for one module.

    Capability links are only resolved when ``exit_capability_ids`` is given,
    since a bare module does not know which capabilities exist.
    """
    warnings = []
    links = module.get("supportsExitCapabilities") or []
    evidence = _records(module.get("assessmentEvidence"))

    if not links:
        warnings.append("Module is not linked to any exit capabilities")
    elif exit_capability_ids is not None:
        known = set(exit_capability_ids)
        for cap_id in links:
            if not isinstance(cap_id, str) or cap_id not in known:
                warnings.append(f"Module links to missing exit capability {cap_id}")

    if not evidence:
        warnings.append("No assessment evidence defined for this module")

    evidence_ids = {ev.get("id") for ev in evidence}
    assessment_ids = {a.get("id") for a in _records(module.get("assessments"))}
    for ev in evidence:
        linked = ev.get("linkedAssessmentId")
        if linked and (not isinstance(linked, str) or linked not in assessment_ids):
            warnings.append(
                f'Evidence "{_short(ev.get("description"), 30)}" links to missing assessment {linked}'
            )

    for act in _records(module.get("learningActivities")):
        target = act.get("preparesForEvidenceId")
        label = _short(act.get("description"), 30)
        if not target:
            warnings.append(f'Activity "{label}" is not linked to assessment evidence')
        elif not isinstance(target, str) or target not in evidence_ids:
            warnings.append(f'Activity "{label}" prepares for missing assessment evidence {target}')

    return warnings


def check_exit_capabilities(doc: Dict[str, Any]) -> List[str]:
    return [
        f'Exit capability "{_short(cap.get("text"), 60)}" has no evidence'
        for cap in _records(doc.get("exitCapabilities"))
        if not _records(cap.get("evidence"))
    ]


# ---- Vocabulary ----
def _closed(field: str, record: Dict[str, Any], where: str) -> List[str]:
    if field not in record or is_allowed(field, record[field]):
        return []
    return [f"{where} has unknown {field} '{record[field]}'"]


def check_vocabulary(doc: Dict[str, Any]) -> List[str]:
    findings = []
    for plo in _records(doc.get("draftPLOs")):
        findings += _closed("level", plo, f"PLO {plo.get('id')}")
    for item in _records(doc.get("assessmentPortfolio")):
        findings += _closed("aiRisk", item, f"Assessment {item.get('id')}")
        findings += _closed("individualOrGroup", item, f"Assessment {item.get('id')}")
    for risk in _records(doc.get("risksAndAssumptions")):
        findings += _closed("category", risk, f"Risk {risk.get('id')}")
    for cap in _records(doc.get("exitCapabilities")):
        for ev in _records(cap.get("evidence")):
            findings += _closed("individualOrGroup", ev, f"Evidence {ev.get('id')}")
    for mod in _records(doc.get("modules")):
        for lo in _records(mod.get("learningOutcomes")):
            findings += _closed("level", lo, f"Module outcome {lo.get('id')}")
        for assess in _records(mod.get("assessments")):
            findings += _closed("aiRisk", assess, f"Module assessment {assess.get('id')}")
        for ev in _records(mod.get("assessmentEvidence")):
            findings += _closed("aiRisk", ev, f"Assessment evidence {ev.get('id')}")
        for item in _records(mod.get("udlEvidence")):
            if not is_udl_pair(item.get("dimension"), item.get("sublevel")):
                findings.append(
                    f"Module {mod.get('id')} has unknown UDL guideline "
                    f"{item.get('dimension')}/{item.get('sublevel')}"
                )
    profile = doc.get("deliveryProfile")
    contact = profile.get("contactHours") if isinstance(profile, dict) else None
    if isinstance(contact, dict):
        findings += [
            f"Delivery profile has unknown contact hour bucket '{bucket}'"
            for bucket in contact
            if not is_allowed("contactHours", bucket)
        ]
    return findings


# ---- Whole document ----
def validate_programme(doc: Dict[str, Any]) -> List[str]:
    errors = []
    title = doc.get("programmeTitle")
    if not isinstance(title, str) or not title.strip():
        errors.append("Programme title is required")
    if not _records(doc.get("exitCapabilities")):
        errors.append("At least 1 exit capability is required")
    if not _records(doc.get("modules")):
        errors.append("At least 1 module is required")
    return errors


def programme_warnings(doc: Dict[str, Any], is_aligned: AlignmentLookup) -> List[str]:
    warnings = check_alignment(doc, is_aligned).warnings
    warnings += check_exit_capabilities(doc)
    capability_ids = [cap.get("id") for cap in _records(doc.get("exitCapabilities"))]
    for mod in _records(doc.get("modules")):
        title = mod.get("title") or mod.get("id") or "Module"
        warnings += [f"{title}: {w}" for w in check_module(mod, capability_ids)]
    warnings += check_vocabulary(doc)
    return warnings


def performance_summary(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Evidence portfolio across all exit capabilities."""
    capabilities = _records(doc.get("exitCapabilities"))
    evidence = [ev for cap in capabilities for ev in _records(cap.get("evidence"))]
    total = len(evidence)
    if not total:
        return {
            "total": 0,
            "exitCapabilities": len(capabilities),
            "types": [],
            "overReliance": [],
            "averageAuthenticity": None,
            "averageTransfer": None,
            "warning": "No programme evidence defined yet.",
        }

    counts: Dict[str, int] = {}
    for ev in evidence:
        counts[ev.get("type") or ""] = counts.get(ev.get("type") or "", 0) + 1
    types = [
        {"type": t, "count": n, "percentage": round(n / total * 100)}
        for t, n in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    ]
    over = [t["type"] for t in types if t["percentage"] > OVER_RELIANCE_PERCENT]

    def average(field: str) -> float:
        return round(sum(parse_int(ev.get(field), 0) for ev in evidence) / total, 1)

    return {
        "total": total,
        "exitCapabilities": len(capabilities),
        "types": types,
        "overReliance": over,
        "averageAuthenticity": average("authenticityScore"),
        "averageTransfer": average("workplaceTransferScore"),
        "warning": (
            f"Programme relies heavily on {', '.join(over)}. Consider diversifying evidence types."
            if over
            else None
        ),
    }
