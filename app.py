import os, logging
from datetime import date
from typing import Any, Dict, List, Optional
from fastapi import Body, Depends, FastAPI, HTTPException, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as RecordError

from programme_studio import checks, delivery, editing, export, vocabulary
from programme_studio.errors import EntityNotFound, ValidationError
from programme_studio.store import ProgrammeStore
from programme_studio.template import load_example, load_programme, serialize

logging.basicConfig(
    level=os.getenv("STUDIO_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")

DB_PATH = os.getenv("STUDIO_DB_PATH", "programme_studio.db")

app = FastAPI(title="Programme Design Studio API", version="1.0.0")
def check_key(x_api_key: Optional[str]):
    expected = os.getenv("ACTION_API_KEY")
    # If you set ACTION_API_KEY in your environment, enforce it; otherwise skip
    if expected and x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")

_store: Optional[ProgrammeStore] = None

def get_store() -> ProgrammeStore:
    global _store
    if _store is None:
        _store = ProgrammeStore(DB_PATH)
        logger.info(f"Opened programme store at {DB_PATH}")
    return _store

# ---- Error mapping ----
@app.exception_handler(ValidationError)
async def studio_validation_error(request: Request, exc: ValidationError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=400, content={"detail": exc.message})

@app.exception_handler(EntityNotFound)
async def entity_not_found(request: Request, exc: EntityNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(RecordError)
async def record_error(request: Request, exc: RecordError):
    errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": errors})

def removed(found: bool, kind: str, entity_id: str):
    if not found:
        raise EntityNotFound(kind, entity_id)
    return {"ok": True}

# health check
@app.get("/healthz")
def health():
    return {"ok": True}


# ---- Document ----
@app.get("/programme")
def get_programme(store: ProgrammeStore = Depends(get_store)):
    return store.load_or_blank()

@app.put("/programme")
def import_programme(doc: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                     store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    return store.save(load_programme(doc))

@app.delete("/programme")
def reset_programme(x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    store.clear()
    store.clear_alignment()
    return store.load_or_blank()

@app.post("/programme/example")
def load_example_programme(x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    store.clear_alignment()
    return store.save(load_example())

@app.put("/programme/canvas")
def update_canvas(values: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                  store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    editing.update_canvas(doc, values)
    return store.save(doc)


# ---- Diagnostics ----
class ValidateResp(BaseModel):
    valid: bool
    errors: List[str]

class WarningsResp(BaseModel):
    warnings: List[str]

@app.get("/programme/validate", response_model=ValidateResp)
def validate(store: ProgrammeStore = Depends(get_store)):
    errors = checks.validate_programme(store.load_or_blank())
    return {"valid": not errors, "errors": errors}

@app.get("/programme/warnings", response_model=WarningsResp)
def warnings(store: ProgrammeStore = Depends(get_store)):
    doc = store.load_or_blank()
    return {"warnings": checks.programme_warnings(doc, store.is_aligned)}

@app.get("/programme/performance")
def performance(store: ProgrammeStore = Depends(get_store)):
    return checks.performance_summary(store.load_or_blank())

@app.get("/modules/{module_id}/warnings", response_model=WarningsResp)
def module_warnings(module_id: str, store: ProgrammeStore = Depends(get_store)):
    doc = store.load_or_blank()
    module = editing.find_module(doc, module_id)
    capability_ids = [c.get("id") for c in doc.get("exitCapabilities") or [] if isinstance(c, dict)]
    return {"warnings": checks.check_module(module, capability_ids)}


# ---- Alignment ----
class AlignmentReq(BaseModel):
    plo_id: str
    assessment_id: str
    aligned: bool = True

@app.get("/alignment", response_model=checks.AlignmentReport)
def get_alignment(store: ProgrammeStore = Depends(get_store)):
    return checks.check_alignment(store.load_or_blank(), store.is_aligned)

@app.put("/alignment", response_model=checks.AlignmentReport)
def set_alignment(req: AlignmentReq, x_api_key: Optional[str] = Header(None),
                  store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    store.set_alignment(req.plo_id, req.assessment_id, req.aligned)
    return checks.check_alignment(store.load_or_blank(), store.is_aligned)


# ---- Delivery ----
class DeliveryReq(BaseModel):
    delivery_mode: Optional[int] = None
    sync_async: Optional[int] = None
    contact_hours: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("contact_hours")
    @classmethod
    def known_buckets(cls, v):
        unknown = [k for k in v if not vocabulary.is_allowed("contactHours", k)]
        if unknown:
            raise ValueError(f"unknown contact hour buckets: {unknown}")
        return v

@app.get("/programme/delivery")
def get_delivery(store: ProgrammeStore = Depends(get_store)):
    return delivery.contact_summary(store.load_or_blank())

@app.put("/programme/delivery")
def set_delivery(req: DeliveryReq, x_api_key: Optional[str] = Header(None),
                 store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    delivery.set_sliders(doc, req.delivery_mode, req.sync_async)
    for bucket, hours in req.contact_hours.items():
        delivery.set_contact_hours(doc, bucket, hours)
    store.save(doc)
    return delivery.contact_summary(doc)


# ---- Exit capabilities & evidence ----
@app.post("/exit-capabilities")
def add_exit_capability(data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                        store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.add_exit_capability(doc, data)
    store.save(doc)
    return record

@app.put("/exit-capabilities/{cap_id}")
def update_exit_capability(cap_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                           store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.update_exit_capability(doc, cap_id, data)
    store.save(doc)
    return record

@app.delete("/exit-capabilities/{cap_id}")
def remove_exit_capability(cap_id: str, x_api_key: Optional[str] = Header(None),
                           store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    result = removed(editing.remove_exit_capability(doc, cap_id), "Exit capability", cap_id)
    store.save(doc)
    return result

@app.post("/exit-capabilities/{cap_id}/evidence")
def add_evidence(cap_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                 store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.save_evidence(doc, cap_id, data)
    store.save(doc)
    return record

@app.put("/exit-capabilities/{cap_id}/evidence/{evidence_id}")
def update_evidence(cap_id: str, evidence_id: str, data: Dict[str, Any] = Body(...),
                    x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.save_evidence(doc, cap_id, data, evidence_id)
    store.save(doc)
    return record

@app.delete("/exit-capabilities/{cap_id}/evidence/{evidence_id}")
def remove_evidence(cap_id: str, evidence_id: str, x_api_key: Optional[str] = Header(None),
                    store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    result = removed(editing.remove_evidence(doc, cap_id, evidence_id), "Evidence", evidence_id)
    store.save(doc)
    return result


# ---- PLOs ----
@app.post("/plos")
def add_plo(data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
            store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.add_plo(doc, data)
    store.save(doc)
    return record

@app.put("/plos/{plo_id}")
def update_plo(plo_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
               store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.update_plo(doc, plo_id, data)
    store.save(doc)
    return record

@app.delete("/plos/{plo_id}")
def remove_plo(plo_id: str, x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    result = removed(editing.remove_plo(doc, plo_id), "PLO", plo_id)
    store.save(doc)
    return result

@app.post("/programme/plos/from-capabilities")
def draft_plos(x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    if not editing.draft_plos_from_capabilities(doc):
        raise HTTPException(409, "Add exit capabilities first.")
    store.save(doc)
    return {"draftPLOs": doc["draftPLOs"]}


# ---- Assessment portfolio ----
@app.get("/patterns")
def list_patterns():
    return {"assessmentPatterns": editing.load_patterns()}

@app.post("/assessments")
def add_assessment(data: Optional[Dict[str, Any]] = Body(None), x_api_key: Optional[str] = Header(None),
                   store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.add_assessment(doc, data)
    store.save(doc)
    return record

@app.put("/assessments/{assessment_id}")
def update_assessment(assessment_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                      store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.update_assessment(doc, assessment_id, data)
    store.save(doc)
    return record

@app.delete("/assessments/{assessment_id}")
def remove_assessment(assessment_id: str, x_api_key: Optional[str] = Header(None),
                      store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    result = removed(editing.remove_assessment(doc, assessment_id), "Assessment", assessment_id)
    store.save(doc)
    return result

@app.post("/programme/patterns/{pattern_id}")
def insert_pattern(pattern_id: str, x_api_key: Optional[str] = Header(None),
                   store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.insert_pattern(doc, pattern_id)
    if record is None:
        raise HTTPException(404, f"Pattern not found: {pattern_id}")
    store.save(doc)
    return record


# ---- Risks ----
@app.post("/risks")
def add_risk(data: Optional[Dict[str, Any]] = Body(None), x_api_key: Optional[str] = Header(None),
             store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.add_risk(doc, data)
    store.save(doc)
    return record

@app.put("/risks/{risk_id}")
def update_risk(risk_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.update_risk(doc, risk_id, data)
    store.save(doc)
    return record

@app.delete("/risks/{risk_id}")
def remove_risk(risk_id: str, x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    result = removed(editing.remove_risk(doc, risk_id), "Risk", risk_id)
    store.save(doc)
    return result


# ---- Modules ----
@app.post("/modules")
def add_module(data: Optional[Dict[str, Any]] = Body(None), x_api_key: Optional[str] = Header(None),
               store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.add_module(doc, data)
    store.save(doc)
    return record

@app.put("/modules/{module_id}")
def update_module(module_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                  store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.update_module(doc, module_id, data)
    store.save(doc)
    return record

@app.delete("/modules/{module_id}")
def remove_module(module_id: str, x_api_key: Optional[str] = Header(None),
                  store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    result = removed(editing.remove_module(doc, module_id), "Module", module_id)
    store.save(doc)
    return result

@app.put("/modules/{module_id}/exit-capabilities/{cap_id}")
def link_exit_capability(module_id: str, cap_id: str, x_api_key: Optional[str] = Header(None),
                         store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    links = editing.link_exit_capability(doc, module_id, cap_id)
    store.save(doc)
    return {"supportsExitCapabilities": links}

@app.delete("/modules/{module_id}/exit-capabilities/{cap_id}")
def unlink_exit_capability(module_id: str, cap_id: str, x_api_key: Optional[str] = Header(None),
                           store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    links = editing.unlink_exit_capability(doc, module_id, cap_id)
    store.save(doc)
    return {"supportsExitCapabilities": links}

@app.post("/modules/{module_id}/assessments")
def add_module_assessment(module_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                          store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.save_module_assessment(doc, module_id, data)
    store.save(doc)
    return record

@app.put("/modules/{module_id}/assessments/{assessment_id}")
def update_module_assessment(module_id: str, assessment_id: str, data: Dict[str, Any] = Body(...),
                             x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.save_module_assessment(doc, module_id, data, assessment_id)
    store.save(doc)
    return record

@app.delete("/modules/{module_id}/assessments/{assessment_id}")
def remove_module_assessment(module_id: str, assessment_id: str, x_api_key: Optional[str] = Header(None),
                             store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    found = editing.remove_module_assessment(doc, module_id, assessment_id)
    result = removed(found, "Module assessment", assessment_id)
    store.save(doc)
    return result

@app.post("/modules/{module_id}/evidence")
def add_assessment_evidence(module_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                            store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.save_assessment_evidence(doc, module_id, data)
    store.save(doc)
    return record

@app.put("/modules/{module_id}/evidence/{evidence_id}")
def update_assessment_evidence(module_id: str, evidence_id: str, data: Dict[str, Any] = Body(...),
                               x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.save_assessment_evidence(doc, module_id, data, evidence_id)
    store.save(doc)
    return record

@app.delete("/modules/{module_id}/evidence/{evidence_id}")
def remove_assessment_evidence(module_id: str, evidence_id: str, x_api_key: Optional[str] = Header(None),
                               store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    found = editing.remove_assessment_evidence(doc, module_id, evidence_id)
    result = removed(found, "Assessment evidence", evidence_id)
    store.save(doc)
    return result

def _save_activity(doc, module_id, data, activity_id=None):
    record = editing.save_learning_activity(doc, module_id, data, activity_id)
    if record is None:
        raise HTTPException(409, "Learning activities must prepare for existing assessment evidence.")
    return record

@app.post("/modules/{module_id}/activities")
def add_learning_activity(module_id: str, data: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
                          store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = _save_activity(doc, module_id, data)
    store.save(doc)
    return record

@app.put("/modules/{module_id}/activities/{activity_id}")
def update_learning_activity(module_id: str, activity_id: str, data: Dict[str, Any] = Body(...),
                             x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = _save_activity(doc, module_id, data, activity_id)
    store.save(doc)
    return record

@app.delete("/modules/{module_id}/activities/{activity_id}")
def remove_learning_activity(module_id: str, activity_id: str, x_api_key: Optional[str] = Header(None),
                             store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    found = editing.remove_learning_activity(doc, module_id, activity_id)
    result = removed(found, "Learning activity", activity_id)
    store.save(doc)
    return result


# ---- UDL ----
class UDLReq(BaseModel):
    dimension: str
    sublevel: str
    evidence: str = ""

@app.put("/modules/{module_id}/udl")
def set_udl(module_id: str, req: UDLReq, x_api_key: Optional[str] = Header(None),
            store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    record = editing.set_udl_evidence(doc, module_id, req.dimension, req.sublevel, req.evidence)
    store.save(doc)
    return record

@app.delete("/modules/{module_id}/udl/{dimension}/{sublevel}")
def remove_udl(module_id: str, dimension: str, sublevel: str, x_api_key: Optional[str] = Header(None),
               store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    found = editing.remove_udl_evidence(doc, module_id, dimension, sublevel)
    result = removed(found, "UDL evidence", f"{dimension}/{sublevel}")
    store.save(doc)
    return result


# ---- Exports ----
def attachment(payload: Dict[str, Any], filename: str) -> JSONResponse:
    return JSONResponse(content=payload, headers={"Content-Disposition": f'attachment; filename="{filename}"'})

@app.get("/export/qqi")
def export_qqi(x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    doc = store.load_or_blank()
    qqi = export.transform_to_qqi(doc)
    # later exports reuse the id instead of deriving a new one
    if not doc.get("id"):
        doc["id"] = qqi["id"]
        store.save(doc)
    return attachment(qqi, export.qqi_filename(qqi["title"], date.today().isoformat()))

@app.get("/export/handoff")
def export_handoff(x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    return attachment(export.build_handoff(store.load_or_blank()), export.HANDOFF_FILENAME)

@app.get("/export/full")
def export_full(x_api_key: Optional[str] = Header(None), store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    return Response(
        content=serialize(store.load_or_blank()),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export.FULL_FILENAME}"'},
    )

@app.post("/import/qqi")
def import_qqi(qqi: Dict[str, Any] = Body(...), x_api_key: Optional[str] = Header(None),
               store: ProgrammeStore = Depends(get_store)):
    check_key(x_api_key)
    return store.save(load_programme(export.programme_from_qqi(qqi)))
