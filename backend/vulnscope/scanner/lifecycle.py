# vulnscope/scanner/lifecycle.py
"""
Scan lifecycle manager.

State machine:

    pending ──start──▶ running ──(timer)──▶ completed
       │                  │        └──────▶ failed
       └──────cancel──────┴───────────────▶ cancelled

Completion runs on a background timer after a depth-dependent delay.
All transitions of one scan are serialized by that scan's lock and
re-check the stored status before writing, so:

    - cancel after completion fired   → InvalidStateError (already terminal)
    - completion after cancel         → no-op (status is no longer running)

The lock is held for the whole completion (sample, persist, score,
update) so a cancel can never interleave with a half-written result.
"""

from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Union
from urllib.parse import urlparse

from vulnscope.errors import InternalError, InvalidStateError, NotFoundError, StorageError, ValidationError
from vulnscope.scanner.base import (
    CHECK_TYPES,
    SCAN_DEPTHS,
    FindingSampler,
    ScanConfig,
    SecurityFinding,
    SecurityScan,
    now_utc,
)
from vulnscope.scanner.generator import ProbabilisticSampler
from vulnscope.utils.scoring import calculate_security_score, security_grade, summarize_findings

if TYPE_CHECKING:
    from vulnscope.storage.base import Storage

logger = logging.getLogger(__name__)

# Seconds before a started scan completes. A tuning knob, not a contract.
DEFAULT_SCAN_DELAYS: Dict[str, float] = {
    "quick": 3.0,
    "standard": 5.0,
    "deep": 8.0,
}

MAX_TARGET_LENGTH = 500

# One host label, then alphabetic parts only: "sub.example.co.uk" passes,
# "a.com" and "x.y-z.com" do not.
DOMAIN_RE = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9-]{0,61}[a-zA-Z0-9](?:\.[a-zA-Z]{2,})+")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def is_valid_domain(value: str) -> bool:
    return bool(DOMAIN_RE.fullmatch((value or "").strip()))


def is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse((value or "").strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    host = parsed.hostname or ""
    return bool(host) and " " not in value


def validate_target(target: Any) -> str:
    v = (target or "").strip() if isinstance(target, str) else ""
    if not v:
        raise ValidationError("Target is required")
    if len(v) > MAX_TARGET_LENGTH:
        raise ValidationError(f"Target must be at most {MAX_TARGET_LENGTH} characters")
    if not (is_valid_url(v) or is_valid_domain(v)):
        raise ValidationError("Please enter a valid URL or domain", details={"target": v})
    return v


def validate_configuration(configuration: Union[ScanConfig, Mapping[str, Any], None]) -> ScanConfig:
    if configuration is None:
        raise ValidationError("Scan configuration is required")
    if isinstance(configuration, Mapping):
        configuration = ScanConfig.from_dict(dict(configuration))

    check_types = configuration.check_types
    if not isinstance(check_types, list) or not check_types:
        raise ValidationError("Select at least one check type")

    unknown = [ct for ct in check_types if ct not in CHECK_TYPES]
    if unknown:
        raise ValidationError(
            f"Unknown check type(s): {', '.join(map(str, unknown))}",
            details={"allowed": list(CHECK_TYPES)},
        )

    if configuration.scan_depth not in SCAN_DEPTHS:
        raise ValidationError(
            "scanDepth must be one of quick, standard, deep",
            details={"allowed": list(SCAN_DEPTHS)},
        )

    # Duplicates would sample the same catalog twice
    deduped = list(dict.fromkeys(check_types))
    notes = configuration.notes.strip() if isinstance(configuration.notes, str) else None
    return ScanConfig(check_types=deduped, scan_depth=configuration.scan_depth, notes=notes or None)


@contextmanager
def storage_errors_as_internal(op: str) -> Iterator[None]:
    try:
        yield
    except StorageError as e:
        raise InternalError(f"Failed to {op}") from e


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class ScanManager:
    """
    Owns every status transition of every scan.

    timer_factory defaults to threading.Timer; tests inject a fake to
    fire completions by hand.
    """

    def __init__(
        self,
        storage: Storage,
        sampler: Optional[FindingSampler] = None,
        delays: Optional[Mapping[str, float]] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.storage = storage
        self.sampler = sampler or ProbabilisticSampler()
        self.delays = dict(DEFAULT_SCAN_DELAYS)
        if delays:
            self.delays.update(delays)
        self._timer_factory = timer_factory

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._timers: Dict[str, Any] = {}

    def _lock_for(self, scan_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(scan_id)
            if lock is None:
                lock = self._locks[scan_id] = threading.Lock()
            return lock

    def _forget_lock(self, scan_id: str) -> None:
        """
        Drop the lock of a scan that is terminal or unknown. Callers still
        holding it re-read the stored status, which no transition accepts
        any more, so a freshly created lock cannot race them.
        """
        with self._locks_guard:
            self._locks.pop(scan_id, None)

    def _require_locked(self, scan_id: str) -> SecurityScan:
        try:
            scan = self._require(scan_id)
        except NotFoundError:
            self._forget_lock(scan_id)
            raise
        if scan.is_terminal:
            self._forget_lock(scan_id)
        return scan

    def _require(self, scan_id: str) -> SecurityScan:
        with storage_errors_as_internal("fetch scan"):
            scan = self.storage.get_scan(scan_id)
        if not scan:
            raise NotFoundError("Scan not found", details={"scanId": scan_id})
        return scan

    # ── Reads ───────────────────────────────────────────────────────

    def get(self, scan_id: str) -> SecurityScan:
        return self._require(scan_id)

    def list(self) -> List[SecurityScan]:
        with storage_errors_as_internal("fetch scans"):
            return self.storage.list_scans()

    def list_findings(self, scan_id: str) -> List[SecurityFinding]:
        self._require(scan_id)
        with storage_errors_as_internal("fetch findings"):
            return self.storage.list_findings(scan_id)

    def summary(self, scan_id: str) -> Dict[str, Any]:
        scan = self._require(scan_id)
        with storage_errors_as_internal("fetch findings"):
            findings = self.storage.list_findings(scan_id)
        data: Dict[str, Any] = summarize_findings(findings)
        if scan.overall_score is not None:
            data["overallScore"] = scan.overall_score
            data["grade"], data["gradeDescription"] = security_grade(scan.overall_score)
        else:
            data["overallScore"] = None
        data["status"] = scan.status
        return data

    # ── Transitions ─────────────────────────────────────────────────

    def create(
        self,
        target: Any,
        configuration: Union[ScanConfig, Mapping[str, Any], None],
        consultant_name: Optional[str] = None,
        client_name: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> SecurityScan:
        target = validate_target(target)
        config = validate_configuration(configuration)

        with storage_errors_as_internal("create scan"):
            scan = self.storage.create_scan(
                target,
                config,
                consultant_name=consultant_name,
                client_name=client_name,
                project_name=project_name,
            )
        logger.info("Scan %s created for %s (%s)", scan.id, target, config.scan_depth)
        return scan

    def start(self, scan_id: str) -> SecurityScan:
        with self._lock_for(scan_id):
            scan = self._require_locked(scan_id)
            if scan.status != "pending":
                raise InvalidStateError(
                    f"Scan cannot be started from status '{scan.status}'",
                    details={"status": scan.status},
                )

            with storage_errors_as_internal("start scan"):
                scan = self.storage.update_scan(scan_id, status="running")

            delay = self.delays.get(scan.configuration.scan_depth, DEFAULT_SCAN_DELAYS["standard"])
            timer = self._timer_factory(delay, self._complete, args=(scan_id,))
            timer.daemon = True
            self._timers[scan_id] = timer
            timer.start()

        logger.info("Scan %s running, completes in %.1fs", scan_id, delay)
        return scan

    def submit(
        self,
        target: Any,
        configuration: Union[ScanConfig, Mapping[str, Any], None],
        consultant_name: Optional[str] = None,
        client_name: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> SecurityScan:
        """Create a scan and start it straight away."""
        scan = self.create(
            target,
            configuration,
            consultant_name=consultant_name,
            client_name=client_name,
            project_name=project_name,
        )
        return self.start(scan.id)

    def cancel(self, scan_id: str) -> SecurityScan:
        with self._lock_for(scan_id):
            scan = self._require_locked(scan_id)
            if not scan.is_cancellable:
                raise InvalidStateError(
                    "Scan cannot be cancelled",
                    details={"status": scan.status},
                )

            with storage_errors_as_internal("cancel scan"):
                scan = self.storage.update_scan(
                    scan_id, status="cancelled", completed_at=now_utc()
                )

            timer = self._timers.pop(scan_id, None)
            if timer is not None:
                timer.cancel()
            self._forget_lock(scan_id)

        logger.info("Scan %s cancelled", scan_id)
        return scan

    # ── Background completion ───────────────────────────────────────

    def _complete(self, scan_id: str) -> None:
        """Timer callback. Never raises: failures demote the scan to failed."""
        self._timers.pop(scan_id, None)

        with self._lock_for(scan_id):
            try:
                self._run_completion(scan_id)
            finally:
                # Completion is the last transition a running scan can take
                self._forget_lock(scan_id)

    def _run_completion(self, scan_id: str) -> None:
        """Sample, persist and score one running scan. Caller holds the scan lock."""
        try:
            scan = self.storage.get_scan(scan_id)
        except StorageError:
            logger.exception("Scan %s: could not load scan for completion", scan_id)
            self._fail(scan_id)
            return

        if not scan or scan.status != "running":
            logger.debug(
                "Scan %s: completion skipped (status=%s)",
                scan_id, scan.status if scan else "missing",
            )
            return

        config = scan.configuration
        try:
            drafts = self.sampler.generate(
                scan_id, scan.target, config.check_types, config.scan_depth
            )
            for draft in drafts:
                self.storage.create_finding(draft)
            score = calculate_security_score(drafts)
            self.storage.update_scan(
                scan_id,
                status="completed",
                completed_at=now_utc(),
                overall_score=score,
            )
        except Exception:
            logger.exception("Scan %s failed for %s", scan_id, scan.target)
            self._fail(scan_id)
            return

        logger.info(
            "Scan %s completed for %s: %d finding(s), score %d",
            scan_id, scan.target, len(drafts), score,
        )

    def _fail(self, scan_id: str) -> None:
        """Demote a running scan to failed. Caller holds the scan lock."""
        try:
            scan = self.storage.get_scan(scan_id)
            if not scan or scan.status != "running":
                return
            self.storage.delete_findings(scan_id)
            self.storage.update_scan(
                scan_id, status="failed", completed_at=now_utc(), overall_score=None
            )
        except Exception:
            logger.exception("Scan %s: could not record failure", scan_id)

    def shutdown(self) -> None:
        """Cancel every pending completion timer."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
