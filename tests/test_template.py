import pytest

from programme_studio.template import (
    blank_programme,
    load_example,
    load_programme,
    merge_over_template,
    serialize,
    touch,
)

NOW = "2024-05-01T09:30:00.000Z"

TOP_LEVEL_KEYS = (
    "programmeTitle",
    "audience",
    "audienceConstraints",
    "valueProposition",
    "credits",
    "nfqLevel",
    "deliveryMode",
    "deliveryDuration",
    "deliveryStructure",
    "differentiators",
    "draftPLOs",
    "assessmentPortfolio",
    "deliveryProfile",
    "learningExperience",
    "risksAndAssumptions",
    "modules",
    "exitCapabilities",
    "createdAt",
    "lastModified",
)


def test_blank_programme_is_structurally_complete() -> None:
    doc = blank_programme(NOW)
    assert set(TOP_LEVEL_KEYS) <= set(doc)
    assert doc["credits"] == 60
    assert doc["nfqLevel"] == 8
    assert doc["createdAt"] == doc["lastModified"] == NOW
    for key in ("draftPLOs", "assessmentPortfolio", "risksAndAssumptions", "modules", "exitCapabilities"):
        assert len(doc[key]) == 1
    assert doc["draftPLOs"][0] == {"id": "plo-1", "statement": "Learning outcome statement", "level": "Analyse"}
    assert doc["deliveryProfile"]["contactHours"]["lectures"] == 0


def test_blank_module_has_every_collection() -> None:
    module = blank_programme(NOW)["modules"][0]
    assert module["id"] == "mod-1"
    for key in ("assessments", "assessmentEvidence", "learningActivities", "supportsExitCapabilities", "udlEvidence"):
        assert module[key] == []


@pytest.mark.parametrize("key", TOP_LEVEL_KEYS)
def test_merge_takes_each_loaded_key_wholesale(key: str) -> None:
    template = blank_programme(NOW)
    loaded = {key: "from-file"}
    merged = merge_over_template(loaded, template)
    assert merged[key] == "from-file"
    untouched = [k for k in TOP_LEVEL_KEYS if k != key]
    assert all(merged[k] == template[k] for k in untouched)


def test_merge_is_shallow_for_nested_values() -> None:
    merged = merge_over_template({"modules": [{"id": "old", "title": "Legacy"}]}, blank_programme(NOW))
    assert merged["modules"] == [{"id": "old", "title": "Legacy"}]


def test_merge_keeps_unknown_keys_and_copies() -> None:
    loaded = {"school": "School of Business", "differentiators": ["a"]}
    merged = merge_over_template(loaded)
    assert merged["school"] == "School of Business"
    merged["differentiators"].append("b")
    assert loaded["differentiators"] == ["a"]


def test_load_programme_migrates_and_stamps() -> None:
    raw = {
        "programmeTitle": "Old export",
        "credits": "90",
        "nfqLevel": "not a number",
        "modules": [{"id": "m", "udlEvidence": [{"dimension": "engagement", "sublevel": "Recruiting"}]}],
    }
    doc = load_programme(raw, NOW)
    assert doc["modules"][0]["udlEvidence"][0]["sublevel"] == "WelcomingIdentities"
    assert doc["credits"] == 90
    assert doc["nfqLevel"] == 8
    assert doc["lastModified"] == NOW
    assert doc["exitCapabilities"][0]["id"] == "exitcap-1"


def test_load_programme_without_stamp_keeps_last_modified() -> None:
    doc = load_programme({"programmeTitle": "Saved", "lastModified": NOW}, "2025-01-01T00:00:00.000Z", stamp=False)
    assert doc["lastModified"] == NOW


def test_each_import_of_an_id_less_file_gets_its_own_id() -> None:
    raw = {"programmeTitle": "Copied", "createdAt": NOW}
    first = load_programme(raw, NOW)
    second = load_programme(raw, NOW)
    assert first["id"].startswith("prog-")
    assert first["id"] != second["id"]
    assert "id" not in raw
    assert load_programme({**raw, "id": "prog-kept"}, NOW)["id"] == "prog-kept"
    assert "id" not in load_programme(raw, NOW, stamp=False)


def test_load_programme_rejects_non_objects_with_blank() -> None:
    doc = load_programme(["not", "a", "document"], NOW)
    assert doc == blank_programme(NOW)


def test_touch_updates_last_modified_only() -> None:
    doc = blank_programme(NOW)
    touch(doc, "2025-01-01T00:00:00.000Z")
    assert doc["lastModified"] == "2025-01-01T00:00:00.000Z"
    assert doc["createdAt"] == NOW


def test_bundled_example_loads_through_migration() -> None:
    doc = load_example(NOW)
    assert doc["programmeTitle"] == "MSc in Management (Part-Time)"
    sublevels = [u["sublevel"] for m in doc["modules"] for u in m["udlEvidence"]]
    assert "Comprehension" not in sublevels
    assert "BuildingKnowledge" in sublevels


def test_serialize_is_indented_json() -> None:
    text = serialize({"programmeTitle": "Café"})
    assert text == '{\n  "programmeTitle": "Café"\n}'
