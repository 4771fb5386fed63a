"""
Tests for the Flask-SQLAlchemy storage backend on in-memory SQLite.
"""

import random
from datetime import timezone

import pytest
from flask import Flask
from sqlalchemy.exc import OperationalError

from conftest import TimerFactory
from vulnscope.cve.base import CveRecord
from vulnscope.errors import StorageError
from vulnscope.extensions import db, init_extensions
from vulnscope.scanner.base import FindingDraft, ScanConfig, now_utc
from vulnscope.scanner.generator import ProbabilisticSampler
from vulnscope.scanner.lifecycle import ScanManager
from vulnscope.storage import SqlStorage
from vulnscope import models  # noqa: F401


@pytest.fixture
def sql_app():
    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    init_extensions(app)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def sql_storage(sql_app):
    return SqlStorage(sql_app)


def _draft(scan_id, severity="high"):
    return FindingDraft(
        scan_id=scan_id,
        category="ssl_tls",
        severity=severity,
        title="TLS 1.0/1.1 Enabled",
        description="Deprecated protocol versions accepted.",
        recommendation="Disable TLS 1.0 and 1.1.",
        affected_resource="example.com",
        evidence="TLSv1.0 handshake succeeded",
        reference_links=["https://example.com/tls"],
        compliance_tags=["PCI-DSS 4.2.1"],
    )


class TestScans:

    def test_create_and_get(self, sql_storage):
        config = ScanConfig(check_types=["ssl_tls", "dns_security"], scan_depth="deep", notes="prod")
        scan = sql_storage.create_scan("example.com", config, consultant_name="Dana")

        loaded = sql_storage.get_scan(scan.id)
        assert loaded.status == "pending"
        assert loaded.configuration == config
        assert loaded.consultant_name == "Dana"
        assert loaded.initiated_at.tzinfo == timezone.utc

    def test_get_missing(self, sql_storage):
        assert sql_storage.get_scan("missing") is None
        assert sql_storage.update_scan("missing", status="running") is None

    def test_update(self, sql_storage):
        scan = sql_storage.create_scan("example.com", ScanConfig(["ssl_tls"], "quick"))
        finished = now_utc()
        updated = sql_storage.update_scan(
            scan.id, status="completed", completed_at=finished, overall_score=72
        )
        assert updated.status == "completed"
        assert updated.overall_score == 72
        assert abs((updated.completed_at - finished).total_seconds()) < 1

    def test_list_newest_first(self, sql_storage):
        a = sql_storage.create_scan("a.example.com", ScanConfig(["ssl_tls"], "quick"))
        b = sql_storage.create_scan("b.example.com", ScanConfig(["ssl_tls"], "quick"))
        sql_storage.update_scan(a.id, initiated_at=now_utc().replace(year=2020))
        assert [s.id for s in sql_storage.list_scans()] == [b.id, a.id]


class TestFindings:

    def test_create_list_delete(self, sql_storage):
        scan = sql_storage.create_scan("example.com", ScanConfig(["ssl_tls"], "quick"))
        created = sql_storage.create_finding(_draft(scan.id))
        sql_storage.create_finding(_draft(scan.id, "low"))

        findings = sql_storage.list_findings(scan.id)
        assert len(findings) == 2
        first = next(f for f in findings if f.id == created.id)
        assert first.reference_links == ["https://example.com/tls"]
        assert first.compliance_tags == ["PCI-DSS 4.2.1"]

        assert sql_storage.delete_findings(scan.id) == 2
        assert sql_storage.list_findings(scan.id) == []

    def test_finding_for_unknown_scan_is_storage_error(self, sql_storage):
        with pytest.raises(StorageError):
            sql_storage.create_finding(_draft("no-such-scan"))


class TestTechnologies:

    def test_crud(self, sql_storage):
        tech = sql_storage.create_technology(
            name="Nginx", vendor="nginx", category="Server", current_version="1.25.3"
        )
        assert tech.status == "unknown"
        assert tech.vulnerability_count == 0

        top = [CveRecord("CVE-2024-1", "desc", "HIGH", "2024-01-01", cvss_score=7.5)]
        updated = sql_storage.update_technology(
            tech.id,
            status="vulnerable",
            high_count=1,
            vulnerability_count=1,
            top_cves=top,
            last_checked_at=now_utc(),
        )
        assert updated.top_cves == top
        assert updated.last_checked_at.tzinfo == timezone.utc

        assert [t.id for t in sql_storage.list_technologies()] == [tech.id]
        assert sql_storage.delete_technology(tech.id)
        assert not sql_storage.delete_technology(tech.id)
        assert sql_storage.get_technology(tech.id) is None


class TestErrors:

    def test_database_failure_raises_storage_error(self, sql_app, sql_storage):
        with sql_app.app_context():
            db.drop_all()
        with pytest.raises(StorageError) as exc:
            sql_storage.list_scans()
        assert isinstance(exc.value.__cause__, OperationalError)


class TestManagerOnSql:

    def test_full_scan_through_sql(self, sql_storage):
        timers = TimerFactory()
        manager = ScanManager(
            sql_storage,
            sampler=ProbabilisticSampler(rng=random.Random(5)),
            timer_factory=timers,
        )
        scan = manager.submit("example.com", {"checkTypes": ["owasp_top_10"], "scanDepth": "deep"})
        timers.last.fire()

        done = manager.get(scan.id)
        assert done.status == "completed"
        assert manager.summary(scan.id)["overallScore"] == done.overall_score
