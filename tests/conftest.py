from __future__ import annotations

import copy
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

import app as studio_app
from programme_studio.store import ProgrammeStore
from programme_studio.template import blank_programme

NOW = "2024-05-01T09:30:00.000Z"


def _module(**overrides: Any) -> dict[str, Any]:
    module = {
        "id": "mod-strategy",
        "title": "Strategic Management",
        "credits": 10,
        "semester": 3,
        "learningOutcomes": [{"id": "modlo-1", "statement": "Analyse competitive environments", "level": "Analyse"}],
        "assessments": [
            {
                "id": "modassess-1",
                "name": "Strategy Report",
                "type": "report",
                "weight": 60,
                "description": "Strategic review",
                "aiRisk": "high",
                "aiRiskDesignMitigation": "Oral defence",
            }
        ],
        "supportsExitCapabilities": ["exitcap-1"],
        "assessmentEvidence": [
            {
                "id": "ev-1",
                "description": "Strategic review report",
                "simulatedPerformance": "Board paper",
                "aiRisk": "medium",
                "scaffoldSteps": [],
                "linkedAssessmentId": "modassess-1",
            }
        ],
        "learningActivities": [
            {"id": "act-1", "description": "Environmental scan workshop", "preparesForEvidenceId": "ev-1", "timing": ""}
        ],
        "learningExperience": {"description": "Case-led", "weeklyRhythm": [], "notes": ""},
        "udlEvidence": [{"dimension": "engagement", "sublevel": "WelcomingIdentities", "evidence": "Own case"}],
    }
    module.update(overrides)
    return module


@pytest.fixture
def module_factory():
    return _module


@pytest.fixture
def programme() -> dict[str, Any]:
    """A small, fully consistent document."""
    doc = blank_programme(NOW)
    doc.update(
        {
            "programmeTitle": "Data Science",
            "audience": "Analysts moving into data leadership",
            "differentiators": ["Industry datasets", "Capstone with partners"],
            "risksAndAssumptions": [
                {
                    "id": "risk-1",
                    "category": "Market",
                    "risk": "Low demand",
                    "assumption": "Employers fund places",
                    "mitigation": "Partner scheme",
                }
            ],
            "exitCapabilities": [
                {
                    "id": "exitcap-1",
                    "text": "Lead data-informed strategy",
                    "tags": ["Analytics"],
                    "evidence": [
                        {
                            "id": "ev-cap-1",
                            "type": "Portfolio",
                            "individualOrGroup": "individual",
                            "authenticityScore": 4,
                            "workplaceTransferScore": 5,
                            "notes": "",
                        }
                    ],
                }
            ],
            "modules": [_module()],
        }
    )
    return copy.deepcopy(doc)


@pytest.fixture
def store() -> Iterator[ProgrammeStore]:
    s = ProgrammeStore(":memory:")
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(store: ProgrammeStore, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.delenv("ACTION_API_KEY", raising=False)
    studio_app.app.dependency_overrides[studio_app.get_store] = lambda: store
    try:
        yield TestClient(studio_app.app)
    finally:
        studio_app.app.dependency_overrides.clear()
