"""
Tests for the weekly CVE check scheduler.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from flask import Flask

from vulnscope import scheduler
from vulnscope.scheduler import (
    CHECK_INTERVAL_DAYS,
    JOB_ID,
    init_scheduler,
    run_scheduled_check,
    shutdown_scheduler,
)


@pytest.fixture(autouse=True)
def _clean_scheduler(monkeypatch):
    monkeypatch.delenv("FLASK_NO_SCHEDULER", raising=False)
    yield
    shutdown_scheduler()


class TestRunScheduledCheck:

    def test_returns_summary(self):
        tracker = MagicMock()
        tracker.run_bulk_check.return_value = {"total": 2, "checked": 2, "unknown": 0, "failed": 0}
        assert run_scheduled_check(tracker)["checked"] == 2

    def test_skipped_when_bulk_check_running(self):
        tracker = MagicMock()
        tracker.run_bulk_check.return_value = None
        assert run_scheduled_check(tracker) is None

    def test_never_raises(self):
        tracker = MagicMock()
        tracker.run_bulk_check.side_effect = RuntimeError("database gone")
        assert run_scheduled_check(tracker) is None


class TestInitScheduler:

    def test_registers_weekly_job(self):
        app = Flask(__name__)
        sched = init_scheduler(app, MagicMock())

        job = sched.get_job(JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(days=CHECK_INTERVAL_DAYS)
        assert job.max_instances == 1

    def test_only_started_once(self):
        app = Flask(__name__)
        first = init_scheduler(app, MagicMock())
        assert init_scheduler(app, MagicMock()) is first

    def test_disabled_by_config(self):
        app = Flask(__name__)
        app.config["FLASK_NO_SCHEDULER"] = True
        assert init_scheduler(app, MagicMock()) is None
        assert scheduler._scheduler is None

    def test_disabled_by_env(self, monkeypatch):
        monkeypatch.setenv("FLASK_NO_SCHEDULER", "1")
        assert init_scheduler(Flask(__name__), MagicMock()) is None
