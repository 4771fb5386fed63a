"""
Tests for the technology tracker: status rules, single and bulk checks.
"""

import threading
from unittest.mock import MagicMock

import pytest
import requests

from conftest import FakeResponse, nvd_item
from vulnscope.cve.base import CveFetchResult, CveRecord
from vulnscope.cve.client import MIN_INTERVAL_NO_KEY, NvdClient
from vulnscope.cve.tracker import (
    DEFAULT_TECHNOLOGIES,
    TechnologyTracker,
    determine_security_status,
)
from vulnscope.errors import InternalError, NotFoundError, ValidationError

NGINX = {"name": "Nginx", "vendor": "nginx", "category": "Server", "current_version": "1.25.3"}


def _result(total=0, critical=0, high=0, top=None):
    return CveFetchResult(
        records=list(top or []),
        top_records=list(top or []),
        total_count=total,
        critical_count=critical,
        high_count=high,
    )


@pytest.fixture
def fake_client():
    return MagicMock()


@pytest.fixture
def tracker(storage, fake_client):
    return TechnologyTracker(storage, fake_client)


class TestDetermineSecurityStatus:

    @pytest.mark.parametrize("total,critical,high,expected", [
        (0, 0, 0, "secure"),
        (1, 1, 0, "vulnerable"),
        (6, 0, 6, "vulnerable"),
        (3, 0, 1, "vulnerable"),
        (11, 0, 0, "vulnerable"),
        (10, 0, 0, "secure"),
        (5, 0, 0, "secure"),
    ])
    def test_rules(self, total, critical, high, expected):
        assert determine_security_status(total, critical, high) == expected


class TestRegistry:

    def test_add_and_list(self, tracker):
        tech = tracker.add(**NGINX, cpe="cpe:2.3:a:nginx:nginx")
        assert tech.status == "unknown"
        assert tech.vulnerability_count == 0
        assert tech.top_cves is None
        assert tech.cpe == "cpe:2.3:a:nginx:nginx"
        assert [t.id for t in tracker.list()] == [tech.id]

    def test_add_requires_fields(self, tracker):
        with pytest.raises(ValidationError) as exc:
            tracker.add(name="Nginx", vendor="nginx")
        assert exc.value.details["missing"] == ["category", "current_version"]

    def test_add_rejects_blank_values(self, tracker):
        with pytest.raises(ValidationError):
            tracker.add(**{**NGINX, "name": "   "})

    def test_delete(self, tracker):
        tech = tracker.add(**NGINX)
        tracker.delete(tech.id)
        assert tracker.list() == []
        with pytest.raises(NotFoundError):
            tracker.delete(tech.id)

    def test_get_unknown(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.get("missing")

    def test_seed_defaults_only_when_empty(self, tracker):
        assert tracker.seed_defaults() == len(DEFAULT_TECHNOLOGIES)
        assert len(tracker.list()) == 20
        assert tracker.seed_defaults() == 0
        assert len(tracker.list()) == 20


class TestCheckOne:

    def test_writes_counts_and_status(self, tracker, fake_client):
        top = [CveRecord("CVE-2024-1", "desc", "CRITICAL", "2024-01-01", cvss_score=9.8)]
        fake_client.fetch.return_value = _result(total=4, critical=1, high=2, top=top)
        tech = tracker.add(**NGINX)

        checked = tracker.check_one(tech.id)

        assert checked.status == "vulnerable"
        assert checked.vulnerability_count == 4
        assert checked.critical_count == 1
        assert checked.high_count == 2
        assert checked.top_cves == top
        assert checked.last_checked_at is not None

    def test_secure_when_no_cves(self, tracker, fake_client):
        fake_client.fetch.return_value = _result()
        tech = tracker.add(**NGINX)
        assert tracker.check_one(tech.id).status == "secure"

    def test_failed_lookup_is_unknown_not_secure(self, tracker, fake_client):
        fake_client.fetch.return_value = CveFetchResult.empty(error="Rate limited by NVD API")
        tech = tracker.add(**NGINX)

        checked = tracker.check_one(tech.id)

        assert checked.status == "unknown"
        assert checked.last_checked_at is None

    def test_failed_lookup_keeps_last_good_result(self, tracker, fake_client):
        top = [CveRecord("CVE-2024-1", "desc", "HIGH", "2024-01-01", cvss_score=7.5)]
        fake_client.fetch.return_value = _result(total=1, high=1, top=top)
        tech = tracker.add(**NGINX)
        first = tracker.check_one(tech.id)

        fake_client.fetch.return_value = CveFetchResult.empty(error="Rate limited by NVD API")
        second = tracker.check_one(tech.id)

        assert second.status == "unknown"
        assert second.last_checked_at == first.last_checked_at
        assert second.vulnerability_count == 1
        assert second.top_cves == top

    def test_exception_resets_to_unknown(self, tracker, fake_client, storage):
        fake_client.fetch.side_effect = RuntimeError("boom")
        tech = tracker.add(**NGINX)

        with pytest.raises(InternalError):
            tracker.check_one(tech.id)
        assert storage.get_technology(tech.id).status == "unknown"

    def test_status_is_checking_during_lookup(self, tracker, fake_client, storage):
        tech = tracker.add(**NGINX)
        seen = []

        def fetch(t):
            seen.append(storage.get_technology(t.id).status)
            return _result()

        fake_client.fetch.side_effect = fetch
        tracker.check_one(tech.id)
        assert seen == ["checking"]

    def test_unknown_id(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.check_one("missing")


class TestCheckAll:

    def test_one_failure_does_not_stop_the_run(self, tracker, fake_client, storage):
        a = tracker.add(**NGINX)
        b = tracker.add(name="Redis", vendor="redis", category="Database", current_version="7.2.3")
        c = tracker.add(name="PHP", vendor="php", category="Language", current_version="8.3.0")

        def fetch(t):
            if t.name == "Redis":
                raise RuntimeError("unexpected")
            return _result(total=2, high=1)

        fake_client.fetch.side_effect = fetch
        summary = tracker.check_all()

        assert summary == {"total": 3, "checked": 2, "unknown": 0, "failed": 1}
        assert storage.get_technology(a.id).status == "vulnerable"
        assert storage.get_technology(b.id).status == "unknown"
        assert storage.get_technology(c.id).status == "vulnerable"

    def test_failing_nvd_leaves_everything_unknown(self, storage, clock):
        session = MagicMock()
        starts = []

        def get(*args, **kwargs):
            starts.append(clock.now)
            raise requests.ConnectionError("NVD unreachable")

        session.get.side_effect = get
        client = NvdClient(session=session, clock=clock, sleep=clock.sleep)
        tracker = TechnologyTracker(storage, client)
        for i in range(5):
            tracker.add(name=f"Tech{i}", vendor="acme", category="Backend", current_version="1.0")

        summary = tracker.check_all()

        assert summary == {"total": 5, "checked": 5, "unknown": 5, "failed": 0}
        assert len(starts) == 5
        for earlier, later in zip(starts, starts[1:]):
            assert later - earlier >= MIN_INTERVAL_NO_KEY
        assert all(t.status == "unknown" for t in tracker.list())

    def test_end_to_end_with_real_client(self, storage, clock):
        session = MagicMock()
        session.get.return_value = FakeResponse(200, {
            "totalResults": 2,
            "vulnerabilities": [
                nvd_item("CVE-2024-10", v31="MEDIUM", v31_score=5.3),
                nvd_item("CVE-2024-11", v2="LOW", v2_score=2.1),
            ],
        })
        tracker = TechnologyTracker(storage, NvdClient(session=session, clock=clock, sleep=clock.sleep))
        tech = tracker.add(**NGINX)

        checked = tracker.check_one(tech.id)

        assert checked.status == "secure"
        assert checked.vulnerability_count == 2
        assert [c.cve_id for c in checked.top_cves] == ["CVE-2024-10", "CVE-2024-11"]


class TestBulkGuard:

    def test_overlapping_bulk_check_is_dropped(self, tracker, fake_client):
        tracker.add(**NGINX)
        entered = threading.Event()
        release = threading.Event()

        def slow_fetch(t):
            entered.set()
            release.wait(timeout=5)
            return _result()

        fake_client.fetch.side_effect = slow_fetch
        results = []
        worker = threading.Thread(target=lambda: results.append(tracker.run_bulk_check()))
        worker.start()
        assert entered.wait(timeout=5)

        assert tracker.bulk_check_running
        assert tracker.run_bulk_check() is None

        release.set()
        worker.join(timeout=5)
        assert results == [{"total": 1, "checked": 1, "unknown": 0, "failed": 0}]
        assert not tracker.bulk_check_running
        assert fake_client.fetch.call_count == 1
