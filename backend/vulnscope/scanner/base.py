# vulnscope/scanner/base.py
"""
Base types for the assessment pipeline.

Architecture:
    ScanManager  →  FindingSampler  →  scoring  →  Storage

FindingSampler: Produces FindingDrafts for one scan. The bundled
                implementation samples the static template catalog;
                a real check implementation can replace it without
                touching the ScanManager.

SecurityScan / SecurityFinding are plain snapshots handed out by the
storage layer. They are never live ORM rows, so they can cross thread
boundaries freely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

CHECK_TYPES = (
    "ssl_tls",
    "security_headers",
    "vulnerability_scan",
    "owasp_top_10",
    "port_scan",
    "dns_security",
)

SCAN_DEPTHS = ("quick", "standard", "deep")

SEVERITIES = ("critical", "high", "medium", "low", "info")

CANCELLABLE_STATUSES = frozenset({"pending", "running"})
TERMINAL_STATUSES = frozenset({"completed", "cancelled", "failed"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ScanConfig:
    check_types: List[str]
    scan_depth: str = "standard"
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "checkTypes": list(self.check_types),
            "scanDepth": self.scan_depth,
        }
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanConfig":
        check_types = data.get("checkTypes") or []
        if isinstance(check_types, (list, tuple)):
            check_types = list(check_types)
        return cls(
            check_types=check_types,
            scan_depth=data.get("scanDepth") or "standard",
            notes=data.get("notes"),
        )


@dataclass
class SecurityScan:
    """
    One assessment run against a target.

    status walks pending → running → completed | cancelled | failed.
    overall_score is only ever set together with status="completed".
    """
    id: str
    target: str
    configuration: ScanConfig
    status: str = "pending"
    initiated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    overall_score: Optional[int] = None
    consultant_name: Optional[str] = None
    client_name: Optional[str] = None
    project_name: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


@dataclass
class FindingDraft:
    """
    A finding produced by a sampler, not yet persisted.

    Fields mirror SecurityFinding minus the id, which the storage
    layer assigns.
    """
    scan_id: str
    category: str                       # one of CHECK_TYPES
    severity: str                       # critical, high, medium, low, info
    title: str
    description: str
    recommendation: str
    affected_resource: str
    evidence: Optional[str] = None
    reference_links: List[str] = field(default_factory=list)
    compliance_tags: List[str] = field(default_factory=list)


@dataclass
class SecurityFinding:
    id: str
    scan_id: str
    category: str
    severity: str
    title: str
    description: str
    recommendation: str
    affected_resource: str
    evidence: Optional[str] = None
    reference_links: List[str] = field(default_factory=list)
    compliance_tags: List[str] = field(default_factory=list)

    @classmethod
    def from_draft(cls, finding_id: str, draft: FindingDraft) -> "SecurityFinding":
        return cls(
            id=finding_id,
            scan_id=draft.scan_id,
            category=draft.category,
            severity=draft.severity,
            title=draft.title,
            description=draft.description,
            recommendation=draft.recommendation,
            affected_resource=draft.affected_resource,
            evidence=draft.evidence,
            reference_links=list(draft.reference_links),
            compliance_tags=list(draft.compliance_tags),
        )


# ---------------------------------------------------------------------------
# Abstract base classes
# ---------------------------------------------------------------------------

class FindingSampler(ABC):
    """
    Capability interface for anything that turns a scan request into findings.

    To plug in a real check implementation:
        1. Subclass FindingSampler
        2. Set the `name` property
        3. Implement `generate(scan_id, target, check_types, depth)`
        4. Pass an instance to ScanManager(sampler=...)

    Exceptions raised from generate() fail the scan; they are not
    swallowed here.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def generate(
        self,
        scan_id: str,
        target: str,
        check_types: List[str],
        depth: str,
    ) -> List[FindingDraft]:
        ...
