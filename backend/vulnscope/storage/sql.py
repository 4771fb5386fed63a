"""
Flask-SQLAlchemy storage backend.

Every operation runs inside its own app context so it is safe to call
from background threads (scan completion timers, the CVE scheduler),
which have no request context of their own.

Datetimes are stored as naive UTC (see models.now_utc) and handed back
timezone-aware.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from vulnscope.cve.base import CveRecord, Technology
from vulnscope.errors import StorageError
from vulnscope.extensions import db
from vulnscope.models import FindingRecord, ScanRecord, TechnologyRecord
from vulnscope.scanner.base import FindingDraft, ScanConfig, SecurityFinding, SecurityScan
from vulnscope.storage.base import Storage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row <-> snapshot helpers
# ---------------------------------------------------------------------------

def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _naive(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None)


def scan_from_row(row: ScanRecord) -> SecurityScan:
    return SecurityScan(
        id=row.id,
        target=row.target,
        configuration=ScanConfig.from_dict(row.configuration or {}),
        status=row.status,
        initiated_at=_aware(row.initiated_at),
        completed_at=_aware(row.completed_at),
        overall_score=row.overall_score,
        consultant_name=row.consultant_name,
        client_name=row.client_name,
        project_name=row.project_name,
    )


def finding_from_row(row: FindingRecord) -> SecurityFinding:
    return SecurityFinding(
        id=row.id,
        scan_id=row.scan_id,
        category=row.category,
        severity=row.severity,
        title=row.title,
        description=row.description,
        recommendation=row.recommendation,
        affected_resource=row.affected_resource,
        evidence=row.evidence,
        reference_links=list(row.reference_links or []),
        compliance_tags=list(row.compliance_tags or []),
    )


def technology_from_row(row: TechnologyRecord) -> Technology:
    top = row.top_cves
    return Technology(
        id=row.id,
        name=row.name,
        vendor=row.vendor,
        category=row.category,
        cpe=row.cpe,
        current_version=row.current_version,
        latest_version=row.latest_version,
        secure_version=row.secure_version,
        status=row.status,
        vulnerability_count=row.vulnerability_count,
        critical_count=row.critical_count,
        high_count=row.high_count,
        top_cves=[CveRecord.from_dict(c) for c in top] if top is not None else None,
        last_checked_at=_aware(row.last_checked_at),
        created_at=_aware(row.created_at),
    )


def _scan_columns(changes: Dict[str, Any]) -> Dict[str, Any]:
    cols = dict(changes)
    if "configuration" in cols and isinstance(cols["configuration"], ScanConfig):
        cols["configuration"] = cols["configuration"].to_dict()
    for key in ("initiated_at", "completed_at"):
        if key in cols:
            cols[key] = _naive(cols[key])
    return cols


def _technology_columns(changes: Dict[str, Any]) -> Dict[str, Any]:
    cols = dict(changes)
    if cols.get("top_cves") is not None:
        cols["top_cves"] = [
            c.to_dict() if isinstance(c, CveRecord) else c for c in cols["top_cves"]
        ]
    for key in ("last_checked_at", "created_at"):
        if key in cols:
            cols[key] = _naive(cols[key])
    return cols


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------

class SqlStorage(Storage):

    def __init__(self, app):
        self._app = app

    @contextmanager
    def _session(self, op: str) -> Iterator[Any]:
        with self._app.app_context():
            try:
                yield db.session
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Storage operation %s failed: %s", op, e)
                raise StorageError(f"{op} failed: {e}") from e

    # ── Scans ───────────────────────────────────────────────────────

    def create_scan(
        self,
        target: str,
        configuration: ScanConfig,
        consultant_name: Optional[str] = None,
        client_name: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> SecurityScan:
        with self._session("create_scan") as session:
            row = ScanRecord(
                target=target,
                status="pending",
                configuration=configuration.to_dict(),
                consultant_name=consultant_name,
                client_name=client_name,
                project_name=project_name,
            )
            session.add(row)
            session.commit()
            return scan_from_row(row)

    def get_scan(self, scan_id: str) -> Optional[SecurityScan]:
        with self._session("get_scan") as session:
            row = session.get(ScanRecord, scan_id)
            return scan_from_row(row) if row else None

    def list_scans(self) -> List[SecurityScan]:
        with self._session("list_scans") as session:
            rows = session.query(ScanRecord).order_by(ScanRecord.initiated_at.desc()).all()
            return [scan_from_row(r) for r in rows]

    def update_scan(self, scan_id: str, **changes: Any) -> Optional[SecurityScan]:
        with self._session("update_scan") as session:
            row = session.get(ScanRecord, scan_id)
            if not row:
                return None
            for key, value in _scan_columns(changes).items():
                setattr(row, key, value)
            session.commit()
            return scan_from_row(row)

    # ── Findings ────────────────────────────────────────────────────

    def create_finding(self, draft: FindingDraft) -> SecurityFinding:
        with self._session("create_finding") as session:
            row = FindingRecord(
                scan_id=draft.scan_id,
                category=draft.category,
                severity=draft.severity,
                title=draft.title,
                description=draft.description,
                recommendation=draft.recommendation,
                affected_resource=draft.affected_resource,
                evidence=draft.evidence,
                reference_links=list(draft.reference_links) or None,
                compliance_tags=list(draft.compliance_tags) or None,
            )
            session.add(row)
            session.commit()
            return finding_from_row(row)

    def list_findings(self, scan_id: str) -> List[SecurityFinding]:
        with self._session("list_findings") as session:
            rows = session.query(FindingRecord).filter_by(scan_id=scan_id).all()
            return [finding_from_row(r) for r in rows]

    def delete_findings(self, scan_id: str) -> int:
        with self._session("delete_findings") as session:
            count = session.query(FindingRecord).filter_by(scan_id=scan_id).delete()
            session.commit()
            return count

    # ── Technologies ────────────────────────────────────────────────

    def list_technologies(self) -> List[Technology]:
        with self._session("list_technologies") as session:
            rows = session.query(TechnologyRecord).order_by(TechnologyRecord.created_at).all()
            return [technology_from_row(r) for r in rows]

    def get_technology(self, technology_id: str) -> Optional[Technology]:
        with self._session("get_technology") as session:
            row = session.get(TechnologyRecord, technology_id)
            return technology_from_row(row) if row else None

    def create_technology(self, **fields: Any) -> Technology:
        with self._session("create_technology") as session:
            row = TechnologyRecord(**_technology_columns(fields))
            session.add(row)
            session.commit()
            return technology_from_row(row)

    def update_technology(self, technology_id: str, **changes: Any) -> Optional[Technology]:
        with self._session("update_technology") as session:
            row = session.get(TechnologyRecord, technology_id)
            if not row:
                return None
            for key, value in _technology_columns(changes).items():
                setattr(row, key, value)
            session.commit()
            return technology_from_row(row)

    def delete_technology(self, technology_id: str) -> bool:
        with self._session("delete_technology") as session:
            row = session.get(TechnologyRecord, technology_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True
