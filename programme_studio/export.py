"""Outbound projections of a programme document.

``transform_to_qqi`` maps the studio document onto the QQI programme schema.
Regulatory fields are renamed and defaulted; everything the schema has no
place for travels unchanged in the ``_studioMetadata`` block, and
``programme_from_qqi`` reads it back.
"""

import copy
import json
import logging
import math
import re
import uuid
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .template import blank_programme, merge_over_template, now_iso

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1.0
EXTENSION_KEY = "_studioMetadata"
MODULE_CODE_WIDTH = 6

HANDOFF_FILENAME = "programme-handoff.json"
FULL_FILENAME = "programme-design.json"

# namespace for ids derived from a document that has none of its own
PROGRAMME_NAMESPACE = uuid.UUID("6f1c2a8e-3b7d-5e40-9a2f-1d8c4b7e0a55")

# export-side defaults; these differ from the blank template's
QQI_DEFAULTS = {
    "awardType": "MSc",
    "awardTypeIsOther": False,
    "nfqLevel": 9,
    "school": "School of [Subject]",
    "totalCredits": 90,
    "mode": "design",
}

# top-level studio fields with no regulatory equivalent
STUDIO_ONLY_FIELDS = (
    "audience",
    "audienceConstraints",
    "valueProposition",
    "differentiators",
    "deliveryMode",
    "deliveryDuration",
    "deliveryStructure",
    "deliveryProfile",
    "learningExperience",
    "risksAndAssumptions",
    "assessmentPortfolio",
    "exitCapabilities",
    "coiPlan",
    "createdAt",
    "lastModified",
)

# module fields with no regulatory equivalent
MODULE_ONLY_FIELDS = (
    "supportsExitCapabilities",
    "assessmentEvidence",
    "learningActivities",
    "learningExperience",
    "udlEvidence",
)


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _records(value: Any) -> List[Dict[str, Any]]:
    return [item for item in _list(value) if isinstance(item, dict)]


def _lookup(table: Dict[str, Any], key: Any) -> Any:
    return table.get(key) if isinstance(key, str) else None


def _text(record: Dict[str, Any]) -> str:
    return record.get("statement") or record.get("text") or ""


def programme_id(doc: Dict[str, Any]) -> str:
    """The document's own id, or one derived from it that is stable across exports."""
    if doc.get("id"):
        return doc["id"]
    seed = doc.get("createdAt") or json.dumps(doc, sort_keys=True, default=str)
    return f"prog-{uuid.uuid5(PROGRAMME_NAMESPACE, str(seed)).hex}"


def module_code(programme_title: str, index: int) -> str:
    """First three letters of the title, upper-cased, then the 1-based index, zero-padded on the right."""
    return f"{programme_title[:3].upper()}{index + 1}".ljust(MODULE_CODE_WIDTH, "0")


def module_stage(module: Dict[str, Any]) -> Any:
    if module.get("stage"):
        return module["stage"]
    semester = module.get("semester")
    if isinstance(semester, bool):
        return 1
    try:
        stage = math.ceil(float(semester) / 2)
    except (TypeError, ValueError, OverflowError):
        return 1
    return stage or 1


def _assessment(assess: Dict[str, Any]) -> Dict[str, Any]:
    weight = assess.get("weight") or 0
    return {
        "id": assess.get("id"),
        "type": assess.get("type") or "assignment",
        "title": assess.get("name") or assess.get("title") or "",
        # both keys carry the same value; consumers read either
        "weighting": weight,
        "weight": weight,
        "text": assess.get("description") or "",
        "mode": assess.get("mode") or "coursework",
        "integrity": assess.get("integrity") or {},
        "mimloIds": [],
        "notes": assess.get("aiRiskDesignMitigation") or assess.get("notes") or "",
        "indicativeWeek": assess.get("indicativeWeek") or None,
    }


def _module(module: Dict[str, Any], index: int, programme_title: str) -> Dict[str, Any]:
    return {
        "id": module.get("id"),
        "title": module.get("title"),
        "code": module.get("code") or module_code(programme_title, index),
        "credits": module.get("credits") or 10,
        "isElective": module.get("isElective") or False,
        "stage": module_stage(module),
        "semester": module.get("semester") or 1,
        "moduleLeadName": module.get("moduleLeadName") or "",
        "moduleLeadEmail": module.get("moduleLeadEmail") or "",
        "mimlos": [
            {"id": lo.get("id"), "text": _text(lo)}
            for lo in _list(module.get("learningOutcomes"))
            if isinstance(lo, dict)
        ],
        "assessments": [_assessment(a) for a in _list(module.get("assessments")) if isinstance(a, dict)],
        "effortHours": module.get("effortHours") or {},
        "readingList": module.get("readingList") or [],
    }


def _extension(doc: Dict[str, Any]) -> Dict[str, Any]:
    meta = {field: copy.deepcopy(doc[field]) for field in STUDIO_ONLY_FIELDS if field in doc}
    meta["ploLevels"] = {
        plo["id"]: plo["level"]
        for plo in _records(doc.get("draftPLOs"))
        if isinstance(plo.get("id"), str) and "level" in plo
    }
    meta["modules"] = [
        {
            "id": mod.get("id"),
            "learningOutcomeLevels": {
                lo["id"]: lo["level"]
                for lo in _records(mod.get("learningOutcomes"))
                if isinstance(lo.get("id"), str) and "level" in lo
            },
            "assessments": {
                a["id"]: {k: copy.deepcopy(a[k]) for k in ("aiRisk", "aiRiskDesignMitigation") if k in a}
                for a in _records(mod.get("assessments"))
                if isinstance(a.get("id"), str)
            },
            **{field: copy.deepcopy(mod[field]) for field in MODULE_ONLY_FIELDS if field in mod},
        }
        for mod in _records(doc.get("modules"))
    ]
    return meta


def transform_to_qqi(doc: Dict[str, Any], now: Optional[str] = None) -> Dict[str, Any]:
    """Map a studio document onto the QQI programme schema.

    Raises ValidationError when the programme has no title; every other gap
    falls back to a default.
    """
    title = doc.get("programmeTitle")
    if not title:
        raise ValidationError("Programme title is required")
    title = str(title)

    plos = [
        {
            "id": plo.get("id"),
            "code": plo.get("code") or f"PLO-{i + 1}",
            "text": _text(plo),
            "standardMappings": plo.get("standardMappings") or [],
        }
        for i, plo in enumerate(_list(doc.get("draftPLOs")))
        if isinstance(plo, dict)
    ]
    modules = [_module(mod, i, title) for i, mod in enumerate(_list(doc.get("modules"))) if isinstance(mod, dict)]

    out = {
        "schemaVersion": SCHEMA_VERSION,
        "id": programme_id(doc),
        "title": title,
        "awardType": doc.get("awardType") or QQI_DEFAULTS["awardType"],
        "awardTypeIsOther": doc.get("awardTypeIsOther") or QQI_DEFAULTS["awardTypeIsOther"],
        "nfqLevel": doc.get("nfqLevel") or QQI_DEFAULTS["nfqLevel"],
        "school": doc.get("school") or QQI_DEFAULTS["school"],
        "awardStandardIds": doc.get("awardStandardIds") or [],
        "awardStandardNames": doc.get("awardStandardNames") or [],
        "totalCredits": doc.get("credits") or QQI_DEFAULTS["totalCredits"],
        "electiveDefinitions": doc.get("electiveDefinitions") or [],
        "intakeMonths": doc.get("intakeMonths") or [],
        "modules": modules,
        "plos": plos,
        "ploToMimlos": doc.get("ploToMimlos") or {},
        "versions": doc.get("versions") or [],
        "updatedAt": now or now_iso(),
        "mode": doc.get("mode") or QQI_DEFAULTS["mode"],
        EXTENSION_KEY: _extension(doc),
    }
    logger.info(f"Exported '{title}' to QQI format ({len(modules)} modules, {len(plos)} PLOs)")
    return out


def _studio_assessment(assess: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    record = {
        "id": assess.get("id"),
        "name": assess.get("title") or "",
        "type": assess.get("type") or "assignment",
        "weight": assess.get("weight", assess.get("weighting", 0)),
        "description": assess.get("text") or "",
        "aiRiskDesignMitigation": assess.get("notes") or "",
    }
    record.update(copy.deepcopy(extra))
    return record


def programme_from_qqi(qqi: Dict[str, Any]) -> Dict[str, Any]:
    """Rebuild a studio document from a QQI export, restoring the extension block.

    Entries that are not objects are skipped, as are extension lookups keyed by anything but a string id.
    """
    meta = copy.deepcopy(_dict(qqi.get(EXTENSION_KEY)))
    plo_levels = _dict(meta.pop("ploLevels", None))
    module_meta = {m["id"]: m for m in _records(meta.pop("modules", None)) if isinstance(m.get("id"), str)}

    doc: Dict[str, Any] = {
        "id": qqi.get("id"),
        "programmeTitle": qqi.get("title") or "",
        "draftPLOs": [],
        "modules": [],
    }
    if qqi.get("totalCredits") is not None:
        doc["credits"] = qqi["totalCredits"]
    for field in ("nfqLevel", "awardType", "awardTypeIsOther", "school", "awardStandardIds", "awardStandardNames",
                  "electiveDefinitions", "intakeMonths", "ploToMimlos", "versions", "mode"):
        if field in qqi:
            doc[field] = copy.deepcopy(qqi[field])

    for plo in _records(qqi.get("plos")):
        record = {"id": plo.get("id"), "statement": plo.get("text") or "", "code": plo.get("code")}
        level = _lookup(plo_levels, plo.get("id"))
        if level is not None:
            record["level"] = level
        if plo.get("standardMappings"):
            record["standardMappings"] = copy.deepcopy(plo["standardMappings"])
        doc["draftPLOs"].append(record)

    for mod in _records(qqi.get("modules")):
        extra = _dict(_lookup(module_meta, mod.get("id")))
        levels = _dict(extra.get("learningOutcomeLevels"))
        assess_extra = _dict(extra.get("assessments"))
        record = {
            key: copy.deepcopy(mod[key])
            for key in ("id", "title", "code", "credits", "isElective", "stage", "semester",
                        "moduleLeadName", "moduleLeadEmail", "effortHours", "readingList")
            if key in mod
        }
        record["learningOutcomes"] = []
        for lo in _records(mod.get("mimlos")):
            outcome = {"id": lo.get("id"), "statement": lo.get("text") or ""}
            level = _lookup(levels, lo.get("id"))
            if level is not None:
                outcome["level"] = level
            record["learningOutcomes"].append(outcome)
        record["assessments"] = [
            _studio_assessment(a, _dict(_lookup(assess_extra, a.get("id")))) for a in _records(mod.get("assessments"))
        ]
        for field in MODULE_ONLY_FIELDS:
            if field in extra:
                record[field] = copy.deepcopy(extra[field])
        doc["modules"].append(record)

    doc.update(meta)
    return merge_over_template(doc, blank_programme())


def build_handoff(doc: Dict[str, Any], now: Optional[str] = None) -> Dict[str, Any]:
    """Subset projection for downstream tools: no renaming, lists never omitted."""
    return {
        "programmeTitle": doc.get("programmeTitle"),
        "audience": doc.get("audience"),
        "exitCapabilities": copy.deepcopy(_list(doc.get("exitCapabilities"))),
        "draftPLOs": copy.deepcopy(_list(doc.get("draftPLOs"))),
        "assessmentPortfolio": copy.deepcopy(_list(doc.get("assessmentPortfolio"))),
        "modules": [
            {
                "id": mod.get("id"),
                "title": mod.get("title"),
                "credits": mod.get("credits"),
                "semester": mod.get("semester"),
                "supportsExitCapabilities": copy.deepcopy(_list(mod.get("supportsExitCapabilities"))),
                "learningOutcomes": copy.deepcopy(_list(mod.get("learningOutcomes"))),
                "assessmentEvidence": copy.deepcopy(_list(mod.get("assessmentEvidence"))),
                "learningActivities": copy.deepcopy(_list(mod.get("learningActivities"))),
                "learningExperience": copy.deepcopy(mod.get("learningExperience") or {}),
            }
            for mod in _list(doc.get("modules"))
            if isinstance(mod, dict)
        ],
        "deliveryModel": {
            "mode": doc.get("deliveryMode"),
            "duration": doc.get("deliveryDuration"),
            "structure": doc.get("deliveryStructure"),
            "credits": doc.get("credits"),
            "nfqLevel": doc.get("nfqLevel"),
        },
        "learningExperience": copy.deepcopy(doc.get("learningExperience") or {}),
        "risks": copy.deepcopy(_list(doc.get("risksAndAssumptions"))),
        "exportedAt": now or now_iso(),
    }


def qqi_filename(title: str, date: str) -> str:
    slug = re.sub(r"\s+", "_", title)
    return f"programme_qqi_{slug}_{date}.json"
