import pytest

from programme_studio.delivery import (
    contact_summary,
    delivery_mode_label,
    refresh_delivery_profile,
    set_contact_hours,
    set_sliders,
    sync_label,
    total_effort_hours,
)
from programme_studio.errors import ValidationError


@pytest.mark.parametrize(
    "value,label",
    [
        (0, "Fully On-Campus"),
        (10, "Fully On-Campus"),
        (11, "Predominantly On-Campus"),
        (50, "Blended"),
        (90, "Predominantly Online"),
        (91, "Fully Online"),
        (250, "Fully Online"),
    ],
)
def test_delivery_mode_label(value: int, label: str) -> None:
    assert delivery_mode_label(value) == label


@pytest.mark.parametrize(
    "value,label",
    [(5, "Fully Synchronous"), (30, "Mostly Synchronous"), (70, "Mixed Sync/Async"), (85, "Mostly Asynchronous"), (100, "Fully Asynchronous")],
)
def test_sync_label(value: int, label: str) -> None:
    assert sync_label(value) == label


@pytest.mark.parametrize(
    "doc,hours",
    [({"credits": 90}, 2250), ({"credits": None, "totalCredits": 30}, 750), ({}, 1500), ({"credits": "abc"}, 1500)],
)
def test_total_effort_hours(doc, hours: int) -> None:
    assert total_effort_hours(doc) == hours


def test_missing_profile_is_replaced_by_default() -> None:
    doc = {"credits": 10}
    profile = refresh_delivery_profile(doc)
    assert doc["deliveryProfile"] is profile
    assert profile["deliveryMode"] == 50 and profile["syncAsync"] == 50
    assert profile["totalEffortHours"] == 250
    assert profile["contactHours"]["lectures"] == 0


def test_contact_hours_and_sliders_are_clamped() -> None:
    doc = {"credits": 10}
    assert set_contact_hours(doc, "lectures", -4) == 0
    assert set_contact_hours(doc, "workshops", "20") == 20
    profile = set_sliders(doc, delivery_mode=140, sync_async=-1)
    assert profile["deliveryMode"] == 100
    assert profile["syncAsync"] == 0


def test_contact_summary() -> None:
    doc = {"credits": 10}
    set_contact_hours(doc, "lectures", 30)
    set_contact_hours(doc, "tutorials", 20)
    set_sliders(doc, delivery_mode=20, sync_async=80)
    summary = contact_summary(doc)
    assert summary["contactTotal"] == 50
    assert summary["independentHours"] == 200
    assert summary["contactPercent"] == 20
    assert summary["deliveryModeLabel"] == "Predominantly On-Campus"
    assert summary["syncLabel"] == "Mostly Asynchronous"


def test_independent_hours_never_negative() -> None:
    doc = {"credits": 1}
    set_contact_hours(doc, "lectures", 100)
    summary = contact_summary(doc)
    assert summary["independentHours"] == 0
    assert summary["contactPercent"] == 400


def test_unknown_contact_hour_bucket_is_rejected() -> None:
    doc = {"credits": 10}
    set_contact_hours(doc, "lectures", 30)
    with pytest.raises(ValidationError, match="bogus"):
        set_contact_hours(doc, "bogus", 400)
    assert "bogus" not in doc["deliveryProfile"]["contactHours"]
    assert contact_summary(doc)["contactTotal"] == 30


def test_optional_contact_hour_buckets_are_accepted() -> None:
    doc = {"credits": 10}
    set_contact_hours(doc, "directedElearning", 15)
    set_contact_hours(doc, "independentLearning", 5)
    assert contact_summary(doc)["contactTotal"] == 20


def test_stored_junk_buckets_do_not_count() -> None:
    doc = {"credits": 10, "deliveryProfile": {"contactHours": {"lectures": 10, "bogus": 400}}}
    summary = contact_summary(doc)
    assert summary["contactTotal"] == 10
    assert summary["contactHours"] == {"lectures": 10}
