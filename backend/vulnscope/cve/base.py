# vulnscope/cve/base.py
"""
Data structures for the CVE tracking subsystem.

CveRecord          One normalized NVD entry. Only the severity normalizer
                   builds these; they live inside Technology.top_cves.
Technology         A tracked software component and its last check result.
CveFetchResult     What one NVD lookup returns. The zero-result shape
                   (CveFetchResult.empty(error=...)) means "no data",
                   not "no CVEs"; `failed` tells the two apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

CVE_SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "UNKNOWN")

# Lower rank = more severe
SEVERITY_RANK: Dict[str, int] = {sev: i for i, sev in enumerate(CVE_SEVERITIES)}

TOP_CVE_LIMIT = 5


@dataclass(frozen=True)
class CveRecord:
    cve_id: str
    description: str
    severity: str                               # CRITICAL, HIGH, MEDIUM, LOW, UNKNOWN
    published_date: str
    cvss_score: Optional[float] = None
    affected_versions: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "cveId": self.cve_id,
            "description": self.description,
            "severity": self.severity,
            "publishedDate": self.published_date,
        }
        if self.cvss_score is not None:
            data["cvssScore"] = self.cvss_score
        if self.affected_versions:
            data["affectedVersions"] = list(self.affected_versions)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CveRecord":
        return cls(
            cve_id=data["cveId"],
            description=data.get("description") or "",
            severity=data.get("severity") or "UNKNOWN",
            published_date=data.get("publishedDate") or "",
            cvss_score=data.get("cvssScore"),
            affected_versions=data.get("affectedVersions"),
        )


@dataclass
class Technology:
    id: str
    name: str
    vendor: str
    category: str
    current_version: str
    cpe: Optional[str] = None
    latest_version: Optional[str] = None
    secure_version: Optional[str] = None
    status: str = "unknown"
    vulnerability_count: int = 0
    critical_count: int = 0
    high_count: int = 0
    top_cves: Optional[List[CveRecord]] = None
    last_checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def search_term(self) -> str:
        return f"{self.vendor} {self.name}".lower()


@dataclass
class CveFetchResult:
    records: List[CveRecord] = field(default_factory=list)
    top_records: List[CveRecord] = field(default_factory=list)
    total_count: int = 0
    critical_count: int = 0
    high_count: int = 0

    # Set when the lookup failed; counts are then meaningless
    error: Optional[str] = None

    @classmethod
    def empty(cls, error: Optional[str] = None) -> "CveFetchResult":
        return cls(error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None
