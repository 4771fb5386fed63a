"""
Shared fixtures.

FakeTimer replaces threading.Timer so scan completions fire only when a
test calls fire(). FakeClock drives the NVD throttle on a fake timeline.
"""

from __future__ import annotations

import random
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from vulnscope import create_app
from vulnscope.scanner.generator import ProbabilisticSampler
from vulnscope.scanner.lifecycle import ScanManager
from vulnscope.storage import MemoryStorage


class FakeTimer:
    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        """Run the callback, as if the timer elapsed before any cancel."""
        self.function(*self.args, **self.kwargs)


class TimerFactory:
    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args=args, kwargs=kwargs)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, json_error: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


def nvd_item(
    cve_id: str,
    v31: Optional[str] = None,
    v31_score: Optional[float] = None,
    v2: Optional[str] = None,
    v2_score: Optional[float] = None,
    description: str = "A vulnerability.",
) -> Dict[str, Any]:
    """One entry of the NVD `vulnerabilities` array."""
    metrics: Dict[str, Any] = {}
    if v31 is not None or v31_score is not None:
        metrics["cvssMetricV31"] = [{
            "cvssData": {"baseSeverity": v31, "baseScore": v31_score},
        }]
    if v2 is not None or v2_score is not None:
        metrics["cvssMetricV2"] = [{
            "baseSeverity": v2,
            "cvssData": {"baseScore": v2_score},
        }]
    return {
        "cve": {
            "id": cve_id,
            "published": "2024-01-15T10:00:00.000",
            "descriptions": [{"lang": "en", "value": description}],
            "metrics": metrics,
        }
    }


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(storage, timers):
    return ScanManager(
        storage,
        sampler=ProbabilisticSampler(rng=random.Random(42)),
        timer_factory=timers,
    )


@pytest.fixture
def nvd_client():
    """Stand-in NVD client; tests set fetch.return_value / side_effect."""
    return MagicMock()


@pytest.fixture
def app(nvd_client, timers):
    app = create_app({
        "TESTING": True,
        "STORAGE_BACKEND": "memory",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SEED_TECHNOLOGIES": False,
        "SCHEDULER_ENABLED": False,
        "NVD_CLIENT": nvd_client,
        "TIMER_FACTORY": timers,
        "FINDING_SAMPLER": ProbabilisticSampler(rng=random.Random(7)),
    })
    yield app
    app.extensions["scan_manager"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
