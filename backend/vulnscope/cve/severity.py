"""
Severity normalizer for NVD CVE API 2.0 records.

An NVD item may carry a CVSS v3.1 payload, a CVSS v2 payload, both, or
neither. The canonical pair is taken with a strict two-tier fallback:

    severity:  v3.1 baseSeverity  (CRITICAL/HIGH/MEDIUM/LOW)
               → v2 baseSeverity  (HIGH/MEDIUM/LOW)
               → UNKNOWN
    score:     v3.1 baseScore → v2 baseScore → None

When both schemes are present the v3.1 values always win, even if the
v2 payload looks "worse". Note the different shapes: v3.1 keeps
baseSeverity inside cvssData, v2 keeps it on the metric itself.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from vulnscope.cve.base import CveRecord

V31_SEVERITIES = frozenset({"CRITICAL", "HIGH", "MEDIUM", "LOW"})
V2_SEVERITIES = frozenset({"HIGH", "MEDIUM", "LOW"})

NO_DESCRIPTION = "No description available"


def _first_metric(item: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    metrics = (item.get("cve") or {}).get("metrics") or {}
    entries = metrics.get(key) or []
    if entries and isinstance(entries[0], dict):
        return entries[0]
    return None


def _label(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value.upper()
    return None


def _score(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_severity(item: Dict[str, Any]) -> str:
    """Canonical severity label for one raw NVD vulnerability item."""
    v31 = _first_metric(item, "cvssMetricV31")
    if v31:
        severity = _label((v31.get("cvssData") or {}).get("baseSeverity"))
        if severity in V31_SEVERITIES:
            return severity

    v2 = _first_metric(item, "cvssMetricV2")
    if v2:
        severity = _label(v2.get("baseSeverity"))
        if severity in V2_SEVERITIES:
            return severity

    return "UNKNOWN"


def extract_cvss_score(item: Dict[str, Any]) -> Optional[float]:
    """Numeric base score: v3.1 if that payload exists, else v2, else None."""
    v31 = _first_metric(item, "cvssMetricV31")
    if v31:
        return _score((v31.get("cvssData") or {}).get("baseScore"))

    v2 = _first_metric(item, "cvssMetricV2")
    if v2:
        return _score((v2.get("cvssData") or {}).get("baseScore"))

    return None


def _english_description(cve: Dict[str, Any]) -> str:
    for desc in cve.get("descriptions") or []:
        if desc.get("lang") == "en" and desc.get("value"):
            return desc["value"]
    return NO_DESCRIPTION


def _affected_versions(cve: Dict[str, Any]) -> Optional[List[str]]:
    """
    Flatten CPE match version bounds into readable ranges, e.g.
    ">=2.4.0, <2.4.52" or "<=1.18.0". None when the record has no bounds.
    """
    ranges: List[str] = []
    for config in cve.get("configurations") or []:
        for node in config.get("nodes") or []:
            for match in node.get("cpeMatch") or []:
                parts = []
                if match.get("versionStartIncluding"):
                    parts.append(f">={match['versionStartIncluding']}")
                if match.get("versionEndIncluding"):
                    parts.append(f"<={match['versionEndIncluding']}")
                if match.get("versionEndExcluding"):
                    parts.append(f"<{match['versionEndExcluding']}")
                if parts:
                    rng = ", ".join(parts)
                    if rng not in ranges:
                        ranges.append(rng)
    return ranges or None


def normalize_record(item: Dict[str, Any]) -> CveRecord:
    """Build a CveRecord from one entry of the NVD `vulnerabilities` array."""
    cve = item.get("cve") or {}
    return CveRecord(
        cve_id=cve.get("id") or "UNKNOWN",
        description=_english_description(cve),
        severity=normalize_severity(item),
        cvss_score=extract_cvss_score(item),
        published_date=cve.get("published") or "",
        affected_versions=_affected_versions(cve),
    )
