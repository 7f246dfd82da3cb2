from __future__ import annotations

import dataclasses
from typing import Any, Callable, Dict, List, Optional, Tuple

from change_tracker.src.diff import ADDED, DELETED, MODIFIED, ChangeRecord
from change_tracker.src.enrich import EnrichedChange, enrich


BREAKING = "breaking"
SECURITY = "security"
DATA = "data"
COSMETIC = "cosmetic"

CATEGORY_WEIGHTS = {BREAKING: 40, SECURITY: 30, DATA: 20, COSMETIC: 1}
CATEGORY_SEVERITY = {BREAKING: "high", SECURITY: "high", DATA: "medium", COSMETIC: "low"}

RECOMMENDATIONS = (
    (80, "CRITICAL: Major breaking changes detected. Extensive testing and communication required."),
    (60, "HIGH RISK: Significant changes detected. Thorough testing recommended before deployment."),
    (40, "MODERATE: Notable changes present. Standard testing procedures should suffice."),
    (20, "LOW RISK: Minor changes detected. Basic smoke testing recommended."),
    (0, "MINIMAL: Mostly cosmetic changes. Safe to deploy after basic verification."),
)

Rule = Tuple[Callable[[ChangeRecord], bool], str, str, List[str]]

RULES: List[Rule] = [
    (
        lambda c: c.change_type == DELETED and ".item[" in c.path,
        BREAKING,
        "Endpoint removed - clients using this endpoint will fail",
        [
            "Notify all API consumers about endpoint removal",
            "Consider deprecation period before removal",
        ],
    ),
    (
        lambda c: c.change_type == DELETED and ".response" in c.path,
        BREAKING,
        "Response structure changed - may break client parsing",
        ["Version the API to maintain backward compatibility"],
    ),
    (
        lambda c: c.change_type == MODIFIED and ".url" in c.path,
        BREAKING,
        "URL changed - existing integrations will fail",
        [
            "Implement URL redirects if possible",
            "Update all documentation and client code",
        ],
    ),
    (
        lambda c: "auth" in c.path.lower(),
        SECURITY,
        "Authentication/Authorization change detected",
        ["Review security implications", "Test all authentication flows"],
    ),
    (
        lambda c: "header" in c.path.lower() and c.change_type == DELETED,
        SECURITY,
        "Header removed - may affect security headers",
        ["Verify no security headers were removed"],
    ),
    (
        lambda c: ".body" in c.path or ".raw" in c.path,
        DATA,
        "Request/Response body structure modified",
        ["Update API documentation", "Test data validation"],
    ),
    (
        lambda c: c.change_type == ADDED and ".response" in c.path,
        DATA,
        "New response added - additional test coverage needed",
        ["Add tests for new response scenario"],
    ),
    (
        lambda c: ".name" in c.path or ".description" in c.path,
        COSMETIC,
        "Documentation/naming change only",
        [],
    ),
]

DEFAULT_IMPACT = (COSMETIC, "Minor change with minimal impact", [])


@dataclasses.dataclass
class ImpactDetail:
    change: EnrichedChange
    category: str
    impact: str
    severity: str
    suggestions: List[str] = dataclasses.field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change": self.change.to_dict(),
            "category": self.category,
            "impact": self.impact,
            "severity": self.severity,
            "suggestions": list(self.suggestions),
        }


@dataclasses.dataclass
class ImpactSummary:
    total_breaking: int = 0
    total_security: int = 0
    total_data: int = 0
    total_cosmetic: int = 0
    risk_score: float = 0.0
    recommendation: str = RECOMMENDATIONS[-1][1]


@dataclasses.dataclass
class ImpactAnalysis:
    collection_id: Optional[str]
    snapshot_id: Optional[int]
    breaking_changes: List[ImpactDetail] = dataclasses.field(default_factory=list)
    security_changes: List[ImpactDetail] = dataclasses.field(default_factory=list)
    data_changes: List[ImpactDetail] = dataclasses.field(default_factory=list)
    cosmetic_changes: List[ImpactDetail] = dataclasses.field(default_factory=list)
    summary: ImpactSummary = dataclasses.field(default_factory=ImpactSummary)

    def bucket(self, category: str) -> List[ImpactDetail]:
        return {
            BREAKING: self.breaking_changes,
            SECURITY: self.security_changes,
            DATA: self.data_changes,
        }.get(category, self.cosmetic_changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection_id": self.collection_id,
            "snapshot_id": self.snapshot_id,
            "breaking_changes": [item.to_dict() for item in self.breaking_changes],
            "security_changes": [item.to_dict() for item in self.security_changes],
            "data_changes": [item.to_dict() for item in self.data_changes],
            "cosmetic_changes": [item.to_dict() for item in self.cosmetic_changes],
            "summary": dataclasses.asdict(self.summary),
        }


def classify_change(record: ChangeRecord) -> ImpactDetail:
    category, impact, suggestions = DEFAULT_IMPACT
    for predicate, rule_category, rule_impact, rule_suggestions in RULES:
        if predicate(record):
            category, impact, suggestions = rule_category, rule_impact, rule_suggestions
            break
    return ImpactDetail(
        change=enrich(record),
        category=category,
        impact=impact,
        severity=CATEGORY_SEVERITY[category],
        suggestions=list(suggestions),
    )


def risk_score(counts: Dict[str, int]) -> float:
    total = sum(counts.values())
    if not total:
        return 0.0
    weighted = sum(CATEGORY_WEIGHTS[category] * count for category, count in counts.items())
    return min((weighted / total) * 2, 100.0)


def recommendation(score: float) -> str:
    for threshold, text in RECOMMENDATIONS:
        if score >= threshold:
            return text
    return RECOMMENDATIONS[-1][1]


def analyze_impact(
    records: List[ChangeRecord],
    collection_id: Optional[str] = None,
    snapshot_id: Optional[int] = None,
) -> ImpactAnalysis:
    analysis = ImpactAnalysis(collection_id=collection_id, snapshot_id=snapshot_id)
    for record in records:
        detail = classify_change(record)
        analysis.bucket(detail.category).append(detail)

    counts = {
        BREAKING: len(analysis.breaking_changes),
        SECURITY: len(analysis.security_changes),
        DATA: len(analysis.data_changes),
        COSMETIC: len(analysis.cosmetic_changes),
    }
    score = risk_score(counts)
    analysis.summary = ImpactSummary(
        total_breaking=counts[BREAKING],
        total_security=counts[SECURITY],
        total_data=counts[DATA],
        total_cosmetic=counts[COSMETIC],
        risk_score=score,
        recommendation=recommendation(score),
    )
    return analysis
