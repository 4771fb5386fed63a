# vulnscope/cve/tracker.py
"""
Technology tracker: keeps per-technology CVE status current.

Check flow for one technology:
    1. Mark status "checking"
    2. Fetch from NVD through the shared rate-limited client
    3. Derive status from the counts (see determine_security_status)
    4. Write counts, top CVEs, status and last_checked_at back

A failed lookup (client returned no data) or any exception during the
check leaves the technology "unknown", never stuck in "checking".

Bulk checks are sequential on purpose: the NVD client is a single
global gate, so fanning out buys no throughput.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from vulnscope.cve.base import Technology
from vulnscope.cve.client import NvdClient
from vulnscope.errors import InternalError, NotFoundError, StorageError, ValidationError
from vulnscope.scanner.base import now_utc

if TYPE_CHECKING:
    from vulnscope.storage.base import Storage

logger = logging.getLogger(__name__)


DEFAULT_TECHNOLOGIES: List[Dict[str, str]] = [
    {"name": "Node.js", "vendor": "nodejs", "category": "Runtime", "cpe": "cpe:2.3:a:nodejs:node.js", "current_version": "20.10.0"},
    {"name": "React", "vendor": "facebook", "category": "Frontend", "cpe": "cpe:2.3:a:facebook:react", "current_version": "18.2.0"},
    {"name": "Express", "vendor": "expressjs", "category": "Backend", "cpe": "cpe:2.3:a:expressjs:express", "current_version": "4.18.2"},
    {"name": "Python", "vendor": "python", "category": "Language", "cpe": "cpe:2.3:a:python:python", "current_version": "3.12.0"},
    {"name": "Django", "vendor": "djangoproject", "category": "Backend", "cpe": "cpe:2.3:a:djangoproject:django", "current_version": "5.0"},
    {"name": "PostgreSQL", "vendor": "postgresql", "category": "Database", "cpe": "cpe:2.3:a:postgresql:postgresql", "current_version": "16.1"},
    {"name": "MySQL", "vendor": "oracle", "category": "Database", "cpe": "cpe:2.3:a:oracle:mysql", "current_version": "8.2.0"},
    {"name": "MongoDB", "vendor": "mongodb", "category": "Database", "cpe": "cpe:2.3:a:mongodb:mongodb", "current_version": "7.0.4"},
    {"name": "Nginx", "vendor": "nginx", "category": "Server", "cpe": "cpe:2.3:a:nginx:nginx", "current_version": "1.25.3"},
    {"name": "Apache HTTP Server", "vendor": "apache", "category": "Server", "cpe": "cpe:2.3:a:apache:http_server", "current_version": "2.4.58"},
    {"name": "PHP", "vendor": "php", "category": "Language", "cpe": "cpe:2.3:a:php:php", "current_version": "8.3.0"},
    {"name": "Laravel", "vendor": "laravel", "category": "Backend", "cpe": "cpe:2.3:a:laravel:laravel", "current_version": "10.35.0"},
    {"name": "Vue.js", "vendor": "vuejs", "category": "Frontend", "cpe": "cpe:2.3:a:vuejs:vue", "current_version": "3.4.0"},
    {"name": "Angular", "vendor": "google", "category": "Frontend", "cpe": "cpe:2.3:a:google:angular", "current_version": "17.0.0"},
    {"name": "Redis", "vendor": "redis", "category": "Database", "cpe": "cpe:2.3:a:redis:redis", "current_version": "7.2.3"},
    {"name": "Docker", "vendor": "docker", "category": "DevOps", "cpe": "cpe:2.3:a:docker:docker", "current_version": "24.0.7"},
    {"name": "Kubernetes", "vendor": "kubernetes", "category": "DevOps", "cpe": "cpe:2.3:a:kubernetes:kubernetes", "current_version": "1.29.0"},
    {"name": "WordPress", "vendor": "wordpress", "category": "CMS", "cpe": "cpe:2.3:a:wordpress:wordpress", "current_version": "6.4.2"},
    {"name": "Spring Boot", "vendor": "vmware", "category": "Backend", "cpe": "cpe:2.3:a:vmware:spring_boot", "current_version": "3.2.0"},
    {"name": "Ruby on Rails", "vendor": "rubyonrails", "category": "Backend", "cpe": "cpe:2.3:a:rubyonrails:rails", "current_version": "7.1.2"},
]

REQUIRED_FIELDS = ("name", "vendor", "category", "current_version")
OPTIONAL_FIELDS = ("cpe", "latest_version", "secure_version")


def determine_security_status(total: int, critical: int, high: int) -> str:
    """
    Derive a technology's status from its CVE counts. Order matters:

        critical > 0 or high > 5     → vulnerable
        total == 0                   → secure
        high > 0 or total > 10       → vulnerable
        otherwise                    → secure
    """
    if critical > 0 or high > 5:
        return "vulnerable"
    if total == 0:
        return "secure"
    if high > 0 or total > 10:
        return "vulnerable"
    return "secure"


def validate_technology(fields: Dict[str, Any]) -> Dict[str, Any]:
    clean: Dict[str, Any] = {}
    missing = []
    for key in REQUIRED_FIELDS:
        value = fields.get(key)
        if not isinstance(value, str) or not value.strip():
            missing.append(key)
        else:
            clean[key] = value.strip()
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )

    for key in OPTIONAL_FIELDS:
        value = fields.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        clean[key] = value.strip() or None
    return clean


class TechnologyTracker:

    def __init__(self, storage: Storage, client: NvdClient):
        self.storage = storage
        self.client = client
        # Held for the duration of a bulk check; shared by the scheduler
        # and on-demand bulk requests
        self._bulk_lock = threading.Lock()

    # ── Registry ────────────────────────────────────────────────────

    def list(self) -> List[Technology]:
        try:
            return self.storage.list_technologies()
        except StorageError as e:
            raise InternalError("Failed to fetch technologies") from e

    def get(self, technology_id: str) -> Technology:
        try:
            tech = self.storage.get_technology(technology_id)
        except StorageError as e:
            raise InternalError("Failed to fetch technology") from e
        if not tech:
            raise NotFoundError("Technology not found", details={"technologyId": technology_id})
        return tech

    def add(self, **fields: Any) -> Technology:
        clean = validate_technology(fields)
        try:
            tech = self.storage.create_technology(**clean)
        except StorageError as e:
            raise InternalError("Failed to create technology") from e
        logger.info("Tracking technology %s %s (%s)", tech.name, tech.current_version, tech.id)
        return tech

    def delete(self, technology_id: str) -> None:
        try:
            removed = self.storage.delete_technology(technology_id)
        except StorageError as e:
            raise InternalError("Failed to delete technology") from e
        if not removed:
            raise NotFoundError("Technology not found", details={"technologyId": technology_id})
        logger.info("Stopped tracking technology %s", technology_id)

    def seed_defaults(self) -> int:
        """Populate the default technology set when the registry is empty."""
        try:
            if self.storage.list_technologies():
                return 0
            for fields in DEFAULT_TECHNOLOGIES:
                self.storage.create_technology(**fields)
        except StorageError as e:
            raise InternalError("Failed to seed technologies") from e
        logger.info("Seeded %d default technologies", len(DEFAULT_TECHNOLOGIES))
        return len(DEFAULT_TECHNOLOGIES)

    # ── Checks ──────────────────────────────────────────────────────

    def _check(self, tech: Technology) -> Technology:
        self.storage.update_technology(tech.id, status="checking")

        result = self.client.fetch(tech)

        if result.failed:
            # Counts and last_checked_at still describe the last good lookup
            updated = self.storage.update_technology(tech.id, status="unknown")
        else:
            updated = self.storage.update_technology(
                tech.id,
                vulnerability_count=result.total_count,
                critical_count=result.critical_count,
                high_count=result.high_count,
                top_cves=list(result.top_records),
                status=determine_security_status(
                    result.total_count, result.critical_count, result.high_count
                ),
                last_checked_at=now_utc(),
            )

        if updated is None:
            raise NotFoundError("Technology not found", details={"technologyId": tech.id})
        return updated

    def _mark_unknown(self, technology_id: str) -> None:
        try:
            self.storage.update_technology(technology_id, status="unknown")
        except Exception:
            logger.exception("Could not reset technology %s to unknown", technology_id)

    def check_one(self, technology_id: str) -> Technology:
        tech = self.get(technology_id)
        try:
            return self._check(tech)
        except NotFoundError:
            raise
        except Exception as e:
            logger.exception("Failed to check %s", tech.name)
            self._mark_unknown(tech.id)
            raise InternalError(f"Failed to check technology {tech.name}") from e

    def check_all(self) -> Dict[str, int]:
        """
        Check every tracked technology, one after another.

        One technology failing marks it unknown and moves on to the next.
        Returns counts for the run.
        """
        technologies = self.list()
        logger.info("Starting CVE check for %d technologies...", len(technologies))

        summary = {"total": len(technologies), "checked": 0, "unknown": 0, "failed": 0}
        for tech in technologies:
            try:
                updated = self._check(tech)
            except Exception:
                logger.exception("Failed to check %s", tech.name)
                self._mark_unknown(tech.id)
                summary["failed"] += 1
                continue

            summary["checked"] += 1
            if updated.status == "unknown":
                summary["unknown"] += 1

        logger.info(
            "CVE check complete: %d checked, %d without data, %d failed",
            summary["checked"], summary["unknown"], summary["failed"],
        )
        return summary

    # ── Bulk guard ──────────────────────────────────────────────────

    @property
    def bulk_check_running(self) -> bool:
        return self._bulk_lock.locked()

    def run_bulk_check(self) -> Optional[Dict[str, int]]:
        """
        check_all() unless one is already in progress, in which case
        this call is dropped and returns None.
        """
        if not self._bulk_lock.acquire(blocking=False):
            logger.info("CVE check already in progress, skipping")
            return None
        try:
            return self.check_all()
        finally:
            self._bulk_lock.release()
