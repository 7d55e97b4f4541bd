import copy

from programme_studio.checks import (
    check_alignment,
    check_exit_capabilities,
    check_module,
    check_vocabulary,
    performance_summary,
    programme_warnings,
    validate_programme,
)


def _one_plo_one_assessment():
    return {
        "draftPLOs": [{"id": "plo-a", "statement": "Evaluate strategic options", "level": "Evaluate"}],
        "assessmentPortfolio": [{"id": "assess-a", "title": "Consultancy Project"}],
    }


def test_unaligned_pair_reports_both_sides() -> None:
    report = check_alignment(_one_plo_one_assessment(), lambda plo, assess: False)
    assert report.unassessed_outcomes == ["Outcome not assessed: Evaluate strategic options"]
    assert report.unmapped_assessments == ["Assessment not mapped: Consultancy Project"]
    assert len(report.warnings) == 2


def test_marking_the_pair_clears_both_warnings() -> None:
    aligned = {("plo-a", "assess-a")}
    report = check_alignment(_one_plo_one_assessment(), lambda plo, assess: (plo, assess) in aligned)
    assert report.warnings == []


def test_alignment_messages_truncate_at_sixty_characters() -> None:
    doc = {"draftPLOs": [{"id": "p", "statement": "x" * 80}], "assessmentPortfolio": []}
    report = check_alignment(doc, lambda plo, assess: False)
    assert report.unassessed_outcomes == ["Outcome not assessed: " + "x" * 60]


def test_module_without_links_or_evidence_gets_two_warnings(module_factory) -> None:
    module = module_factory(supportsExitCapabilities=[], assessmentEvidence=[], learningActivities=[])
    warnings = check_module(module)
    assert "Module is not linked to any exit capabilities" in warnings
    assert "No assessment evidence defined for this module" in warnings
    assert len(set(warnings)) >= 2


def test_consistent_module_has_no_warnings(module_factory) -> None:
    assert check_module(module_factory(), ["exitcap-1"]) == []


def test_unlinked_activity_is_reported(module_factory) -> None:
    module = module_factory(
        learningActivities=[{"id": "act-2", "description": "Reading circle on platform strategy", "preparesForEvidenceId": None}]
    )
    assert check_module(module) == ['Activity "Reading circle on platform str" is not linked to assessment evidence']


def test_dangling_references_are_reported_not_repaired(module_factory) -> None:
    module = module_factory(
        supportsExitCapabilities=["exitcap-gone"],
        assessmentEvidence=[{"id": "ev-1", "description": "Report", "linkedAssessmentId": "modassess-gone"}],
        learningActivities=[{"id": "act-1", "description": "Workshop", "preparesForEvidenceId": "ev-gone"}],
    )
    warnings = check_module(module, ["exitcap-1"])
    assert warnings == [
        "Module links to missing exit capability exitcap-gone",
        'Evidence "Report" links to missing assessment modassess-gone',
        'Activity "Workshop" prepares for missing assessment evidence ev-gone',
    ]
    assert module["supportsExitCapabilities"] == ["exitcap-gone"]


def test_capability_links_are_not_resolved_without_a_lookup(module_factory) -> None:
    assert check_module(module_factory(supportsExitCapabilities=["anything"])) == []


def test_capabilities_without_evidence() -> None:
    doc = {"exitCapabilities": [{"id": "c1", "text": "Lead change", "evidence": []}, {"id": "c2", "text": "x", "evidence": [{"type": "Viva"}]}]}
    assert check_exit_capabilities(doc) == ['Exit capability "Lead change" has no evidence']


def test_validate_programme_messages() -> None:
    assert validate_programme({"programmeTitle": "  ", "exitCapabilities": [], "modules": []}) == [
        "Programme title is required",
        "At least 1 exit capability is required",
        "At least 1 module is required",
    ]


def test_valid_programme_has_no_blocking_errors(programme) -> None:
    assert validate_programme(programme) == []


def test_vocabulary_flags_closed_fields_only(programme) -> None:
    programme["draftPLOs"][0]["level"] = "Analyze"
    programme["risksAndAssumptions"][0]["category"] = "Political"
    programme["exitCapabilities"][0]["tags"] = ["Made-up tag"]
    programme["modules"][0]["udlEvidence"].append({"dimension": "engagement", "sublevel": "Perception"})
    findings = check_vocabulary(programme)
    assert findings == [
        "PLO plo-1 has unknown level 'Analyze'",
        "Risk risk-1 has unknown category 'Political'",
        "Module mod-strategy has unknown UDL guideline engagement/Perception",
    ]


def test_programme_warnings_prefix_module_title(programme) -> None:
    programme["modules"][0]["supportsExitCapabilities"] = []
    warnings = programme_warnings(programme, lambda plo, assess: True)
    assert warnings == ["Strategic Management: Module is not linked to any exit capabilities"]


def test_checks_never_write_to_the_document(programme) -> None:
    before = copy.deepcopy(programme)
    programme_warnings(programme, lambda plo, assess: False)
    performance_summary(programme)
    validate_programme(programme)
    assert programme == before


def test_performance_summary_flags_over_reliance() -> None:
    evidence = [
        {"type": "Portfolio", "authenticityScore": 4, "workplaceTransferScore": 5},
        {"type": "Portfolio", "authenticityScore": 5, "workplaceTransferScore": 4},
        {"type": "Viva", "authenticityScore": 3, "workplaceTransferScore": 3},
    ]
    summary = performance_summary({"exitCapabilities": [{"id": "c", "evidence": evidence}]})
    assert summary["total"] == 3
    assert summary["types"] == [
        {"type": "Portfolio", "count": 2, "percentage": 67},
        {"type": "Viva", "count": 1, "percentage": 33},
    ]
    assert summary["overReliance"] == ["Portfolio"]
    assert summary["averageAuthenticity"] == 4.0
    assert summary["averageTransfer"] == 4.0
    assert "Portfolio" in summary["warning"]


def test_performance_summary_without_evidence() -> None:
    summary = performance_summary({"exitCapabilities": [{"id": "c", "evidence": []}]})
    assert summary["total"] == 0
    assert summary["exitCapabilities"] == 1
    assert summary["warning"] == "No programme evidence defined yet."


def test_vocabulary_flags_unknown_contact_hour_buckets(programme) -> None:
    programme["deliveryProfile"]["contactHours"]["bogus"] = 400
    assert check_vocabulary(programme) == ["Delivery profile has unknown contact hour bucket 'bogus'"]
