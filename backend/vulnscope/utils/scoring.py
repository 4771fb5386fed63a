# File: vulnscope/utils/scoring.py
# =============================================================================
# Security Score Calculator
# =============================================================================
# Single source of truth for scan scoring. Used by: ScanManager (score on
# completion), scan routes (summary endpoint).
#
# Scale (higher is better, the inverse of an exposure score):
#   100     = no findings
#   90–99   = excellent
#   75–89   = good
#   50–74   = moderate concern
#   25–49   = significant risk
#   0–24    = critical posture, needs immediate action
#
# Score is a pure function of the multiset of severities, so the order
# of findings never matters.
# =============================================================================

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

SEVERITY_DEDUCTIONS: Dict[str, int] = {
    "critical": 25,
    "high": 15,
    "medium": 8,
    "low": 3,
    "info": 0,
}


def _severity_of(finding: Any) -> str:
    if isinstance(finding, Mapping):
        return finding["severity"]
    return finding.severity


def calculate_security_score(findings: Iterable[Any]) -> int:
    """
    Calculate a security score from 0–100 for a set of findings.

    Each finding deducts a fixed amount by severity:
      - Critical: 25
      - High:     15
      - Medium:    8
      - Low:       3
      - Info:      0

    An empty set scores 100. The result is clamped to [0, 100].
    Findings may be objects with a `severity` attribute or dicts.
    """
    findings = list(findings)
    if not findings:
        return 100

    total_deduction = sum(SEVERITY_DEDUCTIONS[_severity_of(f)] for f in findings)
    return max(0, min(100, 100 - total_deduction))


def summarize_findings(findings: Iterable[Any]) -> Dict[str, int]:
    """Severity counts plus the overall score, keyed the way the UI reads them."""
    findings = list(findings)
    counts = {sev: 0 for sev in SEVERITY_DEDUCTIONS}
    for f in findings:
        counts[_severity_of(f)] += 1

    return {
        "totalFindings": len(findings),
        "criticalCount": counts["critical"],
        "highCount": counts["high"],
        "mediumCount": counts["medium"],
        "lowCount": counts["low"],
        "infoCount": counts["info"],
        "overallScore": calculate_security_score(findings),
    }


def security_grade(score: int) -> tuple[str, str]:
    """
    Convert a numeric security score to a letter grade and description.
    Returns: (grade, description)
    """
    if score >= 90:
        return "A", "Excellent: minimal exposure"
    elif score >= 75:
        return "B", "Good: low-severity findings only"
    elif score >= 50:
        return "C", "Moderate: some concerning findings"
    elif score >= 25:
        return "D", "Significant: high-severity findings present"
    else:
        return "F", "Critical: immediate remediation required"
