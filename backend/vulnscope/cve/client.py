# FILE: vulnscope/cve/client.py
"""
Rate-limited NVD client.

Uses: NVD CVE API 2.0 (https://services.nvd.nist.gov/rest/json/cves/2.0)
Query: keywordSearch="{vendor} {name}", resultsPerPage=100

NVD allows 5 requests / 30s without an API key (50 / 30s with one), so
every outbound request goes through one gate per client instance:
a lock around a single "time of last request" value. The app factory
builds exactly one NvdClient and shares it, which makes the throttle
process-wide. Callers queue on the lock; nobody starts a request less
than `min_interval` seconds after the previous one started.

Failures never propagate: a 429, any other non-2xx, a timeout, a
transport error or an unparseable body all come back as the zero-result
shape with `error` set. That means "no data", not "no vulnerabilities".
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from vulnscope.cve.base import (
    SEVERITY_RANK,
    TOP_CVE_LIMIT,
    CveFetchResult,
    CveRecord,
    Technology,
)
from vulnscope.cve.severity import normalize_record
from vulnscope.errors import ExternalServiceError

logger = logging.getLogger(__name__)

NVD_API_BASE = "https://services.nvd.nist.gov/rest/json/cves/2.0"
RESULTS_PER_PAGE = 100
TIMEOUT = 30

# NVD recommends 6s between requests without a key
MIN_INTERVAL_NO_KEY = 6.5
MIN_INTERVAL_WITH_KEY = 0.6

HEADERS = {"User-Agent": "vulnscope-cve-tracker/1.0", "Accept": "application/json"}


def rank_top_records(records: List[CveRecord], limit: int = TOP_CVE_LIMIT) -> List[CveRecord]:
    """Most severe first; within a severity, highest CVSS first (missing score = 0)."""
    ordered = sorted(
        records,
        key=lambda r: (SEVERITY_RANK.get(r.severity, len(SEVERITY_RANK)), -(r.cvss_score or 0.0)),
    )
    return ordered[:limit]


class NvdClient:
    """
    The one component allowed to talk to NVD.

    clock/sleep are injectable so tests can run the throttle on a fake
    timeline instead of waiting real seconds.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = NVD_API_BASE,
        timeout: float = TIMEOUT,
        min_interval: Optional[float] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        if min_interval is None:
            min_interval = MIN_INTERVAL_WITH_KEY if api_key else MIN_INTERVAL_NO_KEY
        self.min_interval = min_interval

        self._session = session or requests.Session()
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._last_request_at: Optional[float] = None

    # ── Throttle ────────────────────────────────────────────────────

    def _wait_for_slot(self) -> None:
        """Block until min_interval has passed since the last request started."""
        with self._lock:
            now = self._clock()
            if self._last_request_at is not None:
                elapsed = now - self._last_request_at
                if elapsed < self.min_interval:
                    self._sleep(self.min_interval - elapsed)
            self._last_request_at = self._clock()

    # ── Transport ───────────────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        headers = dict(HEADERS)
        if self.api_key:
            headers["apiKey"] = self.api_key
        return headers

    def search(self, keyword: str) -> Dict[str, Any]:
        """
        One throttled keyword search. Raises ExternalServiceError on any
        failure; fetch() is the non-raising wrapper callers should use.
        """
        self._wait_for_slot()

        try:
            r = self._session.get(
                self.base_url,
                params={"keywordSearch": keyword, "resultsPerPage": RESULTS_PER_PAGE},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalServiceError(f"NVD request failed: {e}") from e

        if r.status_code == 429:
            raise ExternalServiceError("Rate limited by NVD API", details={"status": 429})
        if not 200 <= r.status_code < 300:
            raise ExternalServiceError(
                f"NVD API error: {r.status_code}", details={"status": r.status_code}
            )

        try:
            data = r.json()
        except ValueError as e:
            raise ExternalServiceError(f"NVD returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ExternalServiceError("NVD returned an unexpected payload")
        return data

    # ── Public API ──────────────────────────────────────────────────

    def fetch(self, technology: Technology) -> CveFetchResult:
        """Known CVEs for one technology, or the zero-result shape on failure."""
        keyword = technology.search_term
        logger.info("Fetching CVEs for %s from NVD...", technology.name)

        try:
            data = self.search(keyword)
        except ExternalServiceError as e:
            logger.warning("CVE lookup for %s returned no data: %s", technology.name, e.message)
            return CveFetchResult.empty(error=e.message)

        items = data.get("vulnerabilities") or []
        records = [normalize_record(item) for item in items if isinstance(item, dict)]

        critical_count = sum(1 for r in records if r.severity == "CRITICAL")
        high_count = sum(1 for r in records if r.severity == "HIGH")

        try:
            total_count = int(data.get("totalResults", len(records)))
        except (TypeError, ValueError):
            total_count = len(records)
        # totalResults counts every page; never report fewer than we hold
        total_count = max(total_count, len(records))

        logger.info(
            "Found %d CVEs for %s (%d critical, %d high)",
            total_count, technology.name, critical_count, high_count,
        )

        return CveFetchResult(
            records=records,
            top_records=rank_top_records(records),
            total_count=total_count,
            critical_count=critical_count,
            high_count=high_count,
        )
