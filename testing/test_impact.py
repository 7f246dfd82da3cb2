import pytest

from change_tracker.src.analytics.impact import (
    BREAKING,
    COSMETIC,
    DATA,
    SECURITY,
    analyze_impact,
    classify_change,
    risk_score,
)
from change_tracker.src.diff import ADDED, DELETED, MODIFIED, ChangeRecord


@pytest.mark.parametrize(
    "change_type,path,category",
    [
        (DELETED, "collection.item[0]", BREAKING),
        (DELETED, "collection.item[0].response[1]", BREAKING),
        (MODIFIED, "collection.item[0].request.url", BREAKING),
        (MODIFIED, "collection.auth.type", SECURITY),
        (DELETED, "collection.header[0]", SECURITY),
        (MODIFIED, "collection.item[0].request.body.raw", DATA),
        (MODIFIED, "collection.info.name", COSMETIC),
        (MODIFIED, "collection.variable[0].value", COSMETIC),
    ],
)
def test_classify_change_rules(change_type, path, category):
    assert classify_change(ChangeRecord(change_type=change_type, path=path)).category == category


def test_single_breaking_change_is_critical():
    analysis = analyze_impact([ChangeRecord(change_type=DELETED, path="collection.item[0]")], "c1", 7)
    assert analysis.summary.total_breaking == 1
    assert analysis.summary.risk_score == 80.0
    assert analysis.summary.recommendation.startswith("CRITICAL")
    assert analysis.breaking_changes[0].severity == "high"
    assert analysis.breaking_changes[0].suggestions


def test_mixed_changes_score():
    records = [
        ChangeRecord(change_type=DELETED, path="collection.item[0]"),
        ChangeRecord(change_type=ADDED, path="collection.info.description"),
    ]
    analysis = analyze_impact(records)
    assert analysis.summary.risk_score == pytest.approx(41.0)
    assert analysis.summary.recommendation.startswith("MODERATE")
    payload = analysis.to_dict()
    assert len(payload["cosmetic_changes"]) == 1
    assert payload["summary"]["total_cosmetic"] == 1


def test_no_changes_is_minimal_risk():
    analysis = analyze_impact([])
    assert analysis.summary.risk_score == 0.0
    assert analysis.summary.recommendation.startswith("MINIMAL")
    assert risk_score({}) == 0.0
