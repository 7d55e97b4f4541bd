"""Blank programme template and the load path layered over it."""

import copy
import json
import logging
from datetime import datetime, timezone
from importlib import resources
from typing import Any, Dict, Optional

from .migrate import migrate_udl_guidelines
from .models import (
    PLO,
    AssessmentItem,
    DeliveryProfile,
    ExitCapability,
    LearningExperience,
    Module,
    ModuleOutcome,
    Risk,
    generate_id,
    parse_int,
)

logger = logging.getLogger(__name__)

DATA_PACKAGE = "programme_studio.data"
EXAMPLE_FILE = "msc_management_pt.json"

DEFAULT_CREDITS = 60
DEFAULT_NFQ_LEVEL = 8


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def blank_programme(now: Optional[str] = None) -> Dict[str, Any]:
    """A structurally complete starting document.

    Every collection carries one illustrative element so consumers only ever
    have to handle "empty", never "absent".
    """
    stamp = now or now_iso()
    return {
        "programmeTitle": "New Programme",
        "audience": "Target audience and learners",
        "audienceConstraints": "Time, prerequisites, digital skills, etc.",
        "valueProposition": "What distinguishes this programme",
        "credits": DEFAULT_CREDITS,
        "nfqLevel": DEFAULT_NFQ_LEVEL,
        "deliveryMode": "Blended (Synchronous + Asynchronous)",
        "deliveryDuration": "12 months",
        "deliveryStructure": "Weekly learning cycle",
        "differentiators": ["Key differentiator 1", "Key differentiator 2", "Key differentiator 3"],
        "draftPLOs": [PLO(id="plo-1", statement="Learning outcome statement", level="Analyse").to_doc()],
        "assessmentPortfolio": [
            AssessmentItem(
                id="assess-1",
                title="Assessment Activity",
                type="essay",
                evidence_outputs=["Deliverable 1"],
                weighting_percent=100,
                ai_risk_design_mitigation="Mitigation strategy",
                scaffold_steps=["Step 1", "Step 2", "Step 3"],
                feedback_moments=["Formative", "Summative"],
            ).to_doc()
        ],
        "deliveryProfile": DeliveryProfile().to_doc(),
        "learningExperience": LearningExperience().to_doc(),
        "risksAndAssumptions": [
            Risk(
                id="risk-1",
                risk="Risk statement",
                assumption="Related assumption",
                mitigation="Mitigation strategy",
            ).to_doc()
        ],
        "modules": [
            Module(
                id="mod-1",
                title="Module 1",
                learning_outcomes=[ModuleOutcome(id="modlo-1", statement="Module learning outcome")],
            ).to_doc()
        ],
        "exitCapabilities": [
            ExitCapability(
                id="exitcap-1",
                text="Lead strategic initiatives in complex, global business environments",
                tags=["Strategic", "Leadership"],
            ).to_doc()
        ],
        "createdAt": stamp,
        "lastModified": stamp,
    }


def merge_over_template(loaded: Dict[str, Any], template: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Shallow top-level merge: every key in ``loaded`` replaces the template's.

    Nested values are taken wholesale from ``loaded``; a partial module from
    an old export stays partial.
    """
    base = copy.deepcopy(template) if template is not None else blank_programme()
    base.update(copy.deepcopy(loaded))
    return base


def _normalise_header(doc: Dict[str, Any]) -> None:
    doc["credits"] = parse_int(doc.get("credits"), DEFAULT_CREDITS)
    doc["nfqLevel"] = parse_int(doc.get("nfqLevel"), DEFAULT_NFQ_LEVEL)


def load_programme(raw: Any, now: Optional[str] = None, stamp: bool = True) -> Dict[str, Any]:
    """Import path for stored, uploaded or bundled documents: migrate, merge, stamp.

    An imported document without an id gets a fresh ``prog-`` id, so each import
    of an id-less file is its own programme. Stored documents are read with
    ``stamp=False``, which keeps the saved id and ``lastModified``.
    """
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring non-object programme document ({type(raw).__name__}); using blank template")
        return blank_programme(now)
    doc = merge_over_template(migrate_udl_guidelines(raw))
    _normalise_header(doc)
    if stamp:
        if not doc.get("id"):
            doc["id"] = generate_id("prog")
        doc["lastModified"] = now or now_iso()
    return doc


def touch(doc: Dict[str, Any], now: Optional[str] = None) -> Dict[str, Any]:
    doc["lastModified"] = now or now_iso()
    return doc


def load_example(now: Optional[str] = None) -> Dict[str, Any]:
    raw = json.loads(resources.files(DATA_PACKAGE).joinpath(EXAMPLE_FILE).read_text(encoding="utf-8"))
    return load_programme(raw, now)


def serialize(doc: Dict[str, Any]) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False)
