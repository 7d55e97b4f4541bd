import math

import pytest

from programme_studio.models import UDL_GUIDELINES, ContactHours, DeliveryProfile, generate_id, parse_int
from programme_studio.vocabulary import (
    BLOOM_LEVELS,
    CONTACT_HOUR_BUCKETS,
    is_allowed,
    is_udl_pair,
    rule_for,
    suggestions,
)


@pytest.mark.parametrize(
    "value,expected",
    [(12, 12), ("12", 12), (" 7 ", 7), ("7.9", 7), (3.2, 3), (math.nan, 60), ("abc", 60), (None, 60), (True, 60)],
)
def test_parse_int_never_returns_junk(value, expected: int) -> None:
    assert parse_int(value, 60) == expected


def test_generated_ids_carry_prefix_and_are_unique() -> None:
    ids = {generate_id("plo") for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("plo-") for i in ids)


def test_udl_taxonomy_is_three_by_three() -> None:
    assert list(UDL_GUIDELINES) == ["representation", "actionExpression", "engagement"]
    assert all(len(v) == 3 for v in UDL_GUIDELINES.values())


def test_closed_and_open_vocabularies() -> None:
    assert rule_for("level").kind == "closed"
    assert is_allowed("level", "Analyse")
    assert not is_allowed("level", "Analyze")
    assert is_allowed("tags", "Anything at all")
    assert is_allowed("type", "Podcast")
    assert is_allowed("unknownField", object())
    assert suggestions("level") == BLOOM_LEVELS
    assert "Portfolio" in suggestions("type")
    assert suggestions("nothing") == ()


def test_contact_hour_buckets_follow_record_aliases() -> None:
    assert CONTACT_HOUR_BUCKETS == (
        "lectures", "tutorials", "labs", "seminars", "workshops", "other", "directedElearning", "independentLearning",
    )
    assert is_allowed("contactHours", "directedElearning")
    assert not is_allowed("contactHours", "bogus")


def test_udl_pairs() -> None:
    assert is_udl_pair("engagement", "EmotionalCapacity")
    assert not is_udl_pair("engagement", "Perception")
    assert not is_udl_pair(["engagement"], "EmotionalCapacity")


def test_contact_hours_optional_buckets_are_omitted() -> None:
    assert "directedElearning" not in ContactHours().to_doc()
    assert ContactHours(directed_elearning=-5).to_doc()["directedElearning"] == 0


def test_delivery_profile_doc_shape() -> None:
    doc = DeliveryProfile(delivery_mode="75").to_doc()
    assert doc == {
        "deliveryMode": 75,
        "syncAsync": 50,
        "totalEffortHours": 1500,
        "contactHours": {"lectures": 0, "tutorials": 0, "labs": 0, "seminars": 0, "workshops": 0, "other": 0},
    }
