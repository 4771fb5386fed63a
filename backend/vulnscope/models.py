from __future__ import annotations

import uuid
from datetime import datetime, timezone
from .extensions import db


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class ScanRecord(db.Model):
    __tablename__ = "security_scan"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    target = db.Column(db.String(500), nullable=False)

    # pending, running, completed, cancelled, failed
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # {"checkTypes": [...], "scanDepth": "quick", "notes": "..."}
    configuration = db.Column(db.JSON, nullable=False)

    initiated_at = db.Column(db.DateTime, nullable=False, default=now_utc, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    overall_score = db.Column(db.Integer, nullable=True)

    # Report labels
    consultant_name = db.Column(db.String(255), nullable=True)
    client_name = db.Column(db.String(255), nullable=True)
    project_name = db.Column(db.String(255), nullable=True)

    findings = db.relationship(
        "FindingRecord",
        backref="scan",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class FindingRecord(db.Model):
    __tablename__ = "security_finding"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    scan_id = db.Column(
        db.String(36),
        db.ForeignKey("security_scan.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category = db.Column(db.String(50), nullable=False)     # ssl_tls, security_headers, port_scan, ...
    severity = db.Column(db.String(20), nullable=False)     # critical, high, medium, low, info
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(2000), nullable=False, default="")
    recommendation = db.Column(db.String(2000), nullable=False, default="")
    affected_resource = db.Column(db.String(500), nullable=False)

    evidence = db.Column(db.String(2000), nullable=True)
    reference_links = db.Column(db.JSON, nullable=True)
    compliance_tags = db.Column(db.JSON, nullable=True)


class TechnologyRecord(db.Model):
    __tablename__ = "technology"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    vendor = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    cpe = db.Column(db.String(500), nullable=True)

    current_version = db.Column(db.String(100), nullable=False)
    latest_version = db.Column(db.String(100), nullable=True)
    secure_version = db.Column(db.String(100), nullable=True)

    # secure, vulnerable, unknown, checking
    status = db.Column(db.String(20), nullable=False, default="unknown")
    vulnerability_count = db.Column(db.Integer, nullable=False, default=0)
    critical_count = db.Column(db.Integer, nullable=False, default=0)
    high_count = db.Column(db.Integer, nullable=False, default=0)

    # Top 5 most severe CVEs, as CveRecord.to_dict() payloads
    top_cves = db.Column(db.JSON, nullable=True)

    last_checked_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=now_utc)
