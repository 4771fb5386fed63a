"""
In-process storage backend.

Dict-backed, guarded by one lock. Used for development without a
database (STORAGE_BACKEND=memory) and by the test suite. Every read
returns a copy so callers can never mutate stored state by accident.
"""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional

from vulnscope.cve.base import Technology
from vulnscope.scanner.base import FindingDraft, ScanConfig, SecurityFinding, SecurityScan, now_utc
from vulnscope.storage.base import Storage


def _new_id() -> str:
    return str(uuid.uuid4())


class MemoryStorage(Storage):

    def __init__(self):
        self._lock = threading.RLock()
        self._scans: Dict[str, SecurityScan] = {}
        self._findings: Dict[str, List[SecurityFinding]] = {}
        self._technologies: Dict[str, Technology] = {}

    # ── Scans ───────────────────────────────────────────────────────

    def create_scan(
        self,
        target: str,
        configuration: ScanConfig,
        consultant_name: Optional[str] = None,
        client_name: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> SecurityScan:
        scan = SecurityScan(
            id=_new_id(),
            target=target,
            configuration=copy.deepcopy(configuration),
            status="pending",
            initiated_at=now_utc(),
            consultant_name=consultant_name,
            client_name=client_name,
            project_name=project_name,
        )
        with self._lock:
            self._scans[scan.id] = scan
            return copy.deepcopy(scan)

    def get_scan(self, scan_id: str) -> Optional[SecurityScan]:
        with self._lock:
            scan = self._scans.get(scan_id)
            return copy.deepcopy(scan) if scan else None

    def list_scans(self) -> List[SecurityScan]:
        with self._lock:
            scans = [copy.deepcopy(s) for s in reversed(list(self._scans.values()))]
        return sorted(scans, key=lambda s: s.initiated_at, reverse=True)

    def update_scan(self, scan_id: str, **changes: Any) -> Optional[SecurityScan]:
        with self._lock:
            scan = self._scans.get(scan_id)
            if scan is None:
                return None
            updated = replace(scan, **changes)
            self._scans[scan_id] = updated
            return copy.deepcopy(updated)

    # ── Findings ────────────────────────────────────────────────────

    def create_finding(self, draft: FindingDraft) -> SecurityFinding:
        finding = SecurityFinding.from_draft(_new_id(), draft)
        with self._lock:
            self._findings.setdefault(draft.scan_id, []).append(finding)
            return copy.deepcopy(finding)

    def list_findings(self, scan_id: str) -> List[SecurityFinding]:
        with self._lock:
            return [copy.deepcopy(f) for f in self._findings.get(scan_id, [])]

    def delete_findings(self, scan_id: str) -> int:
        with self._lock:
            return len(self._findings.pop(scan_id, []))

    # ── Technologies ────────────────────────────────────────────────

    def list_technologies(self) -> List[Technology]:
        with self._lock:
            return [copy.deepcopy(t) for t in self._technologies.values()]

    def get_technology(self, technology_id: str) -> Optional[Technology]:
        with self._lock:
            tech = self._technologies.get(technology_id)
            return copy.deepcopy(tech) if tech else None

    def create_technology(self, **fields: Any) -> Technology:
        fields.setdefault("created_at", now_utc())
        tech = Technology(id=_new_id(), **fields)
        with self._lock:
            self._technologies[tech.id] = tech
            return copy.deepcopy(tech)

    def update_technology(self, technology_id: str, **changes: Any) -> Optional[Technology]:
        with self._lock:
            tech = self._technologies.get(technology_id)
            if tech is None:
                return None
            updated = replace(tech, **changes)
            self._technologies[technology_id] = updated
            return copy.deepcopy(updated)

    def delete_technology(self, technology_id: str) -> bool:
        with self._lock:
            return self._technologies.pop(technology_id, None) is not None
