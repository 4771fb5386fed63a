"""
Persistence contract consumed by the engine.

Backends hand out dataclass snapshots (SecurityScan, SecurityFinding,
Technology), never live ORM rows. `update_*` applies a partial change
and returns the new snapshot, or None when the id is unknown.

Any failure of the underlying store is raised as StorageError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from vulnscope.cve.base import Technology
from vulnscope.scanner.base import FindingDraft, ScanConfig, SecurityFinding, SecurityScan


class Storage(ABC):

    # ── Scans ───────────────────────────────────────────────────────

    @abstractmethod
    def create_scan(
        self,
        target: str,
        configuration: ScanConfig,
        consultant_name: Optional[str] = None,
        client_name: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> SecurityScan:
        ...

    @abstractmethod
    def get_scan(self, scan_id: str) -> Optional[SecurityScan]:
        ...

    @abstractmethod
    def list_scans(self) -> List[SecurityScan]:
        """All scans, newest first."""
        ...

    @abstractmethod
    def update_scan(self, scan_id: str, **changes: Any) -> Optional[SecurityScan]:
        ...

    # ── Findings ────────────────────────────────────────────────────

    @abstractmethod
    def create_finding(self, draft: FindingDraft) -> SecurityFinding:
        ...

    @abstractmethod
    def list_findings(self, scan_id: str) -> List[SecurityFinding]:
        ...

    @abstractmethod
    def delete_findings(self, scan_id: str) -> int:
        """Remove every finding of a scan. Returns how many were removed."""
        ...

    # ── Technologies ────────────────────────────────────────────────

    @abstractmethod
    def list_technologies(self) -> List[Technology]:
        ...

    @abstractmethod
    def get_technology(self, technology_id: str) -> Optional[Technology]:
        ...

    @abstractmethod
    def create_technology(self, **fields: Any) -> Technology:
        ...

    @abstractmethod
    def update_technology(self, technology_id: str, **changes: Any) -> Optional[Technology]:
        ...

    @abstractmethod
    def delete_technology(self, technology_id: str) -> bool:
        """True if a technology was removed, False if the id was unknown."""
        ...
