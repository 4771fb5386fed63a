"""
Tests for the security score calculator.
"""

import pytest

from vulnscope.scanner.base import FindingDraft
from vulnscope.utils.scoring import (
    calculate_security_score,
    security_grade,
    summarize_findings,
)


def _findings(*severities):
    return [{"severity": s} for s in severities]


class TestCalculateSecurityScore:

    def test_no_findings_scores_100(self):
        assert calculate_security_score([]) == 100

    def test_info_only_scores_100(self):
        assert calculate_security_score(_findings("info", "info", "info")) == 100

    def test_deductions_per_severity(self):
        assert calculate_security_score(_findings("critical")) == 75
        assert calculate_security_score(_findings("high")) == 85
        assert calculate_security_score(_findings("medium")) == 92
        assert calculate_security_score(_findings("low")) == 97

    def test_mixed_findings(self):
        # 100 - 15 - 8 - 3 - 0
        assert calculate_security_score(_findings("high", "medium", "low", "info")) == 74

    def test_clamped_at_zero(self):
        assert calculate_security_score(_findings(*["critical"] * 5)) == 0

    def test_order_does_not_matter(self):
        a = _findings("critical", "low", "medium", "high", "low")
        b = list(reversed(a))
        assert calculate_security_score(a) == calculate_security_score(b)

    def test_accepts_objects(self):
        drafts = [
            FindingDraft(
                scan_id="s1",
                category="ssl_tls",
                severity="medium",
                title="t",
                description="d",
                recommendation="r",
                affected_resource="example.com",
            )
        ]
        assert calculate_security_score(drafts) == 92

    def test_always_in_range(self):
        for n in range(0, 12):
            score = calculate_security_score(_findings(*["high"] * n))
            assert 0 <= score <= 100


class TestSummarizeFindings:

    def test_counts_and_score(self):
        summary = summarize_findings(_findings("critical", "high", "high", "info"))
        assert summary == {
            "totalFindings": 4,
            "criticalCount": 1,
            "highCount": 2,
            "mediumCount": 0,
            "lowCount": 0,
            "infoCount": 1,
            "overallScore": 45,
        }

    def test_empty(self):
        summary = summarize_findings([])
        assert summary["totalFindings"] == 0
        assert summary["overallScore"] == 100


class TestSecurityGrade:

    @pytest.mark.parametrize("score,grade", [
        (100, "A"), (90, "A"), (89, "B"), (75, "B"),
        (74, "C"), (50, "C"), (49, "D"), (25, "D"), (24, "F"), (0, "F"),
    ])
    def test_boundaries(self, score, grade):
        assert security_grade(score)[0] == grade
