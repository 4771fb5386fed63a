# =============================================================================
# File: vulnscope/technologies/routes.py
# Description: Technology CVE tracking routes.
#
# Endpoints:
#   - GET    /api/technologies             list tracked technologies
#   - POST   /api/technologies             start tracking a technology
#   - DELETE /api/technologies/<id>        stop tracking a technology
#   - POST   /api/technologies/check       bulk CVE check (background thread)
#   - POST   /api/technologies/<id>/check  single CVE check (synchronous)
#
# The single check blocks on the NVD rate limiter, so it can take several
# seconds when other checks are queued ahead of it.
# =============================================================================

from __future__ import annotations

import logging
import threading
from flask import Blueprint, current_app, jsonify, request

from vulnscope.cve.base import Technology
from vulnscope.cve.tracker import TechnologyTracker
from vulnscope.errors import ValidationError
from vulnscope.scanner.base import iso

logger = logging.getLogger(__name__)

technologies_bp = Blueprint("technologies", __name__, url_prefix="/api/technologies")

# JSON key → tracker field
_INPUT_FIELDS = {
    "name": "name",
    "vendor": "vendor",
    "category": "category",
    "cpe": "cpe",
    "currentVersion": "current_version",
    "latestVersion": "latest_version",
    "secureVersion": "secure_version",
}


def _tracker() -> TechnologyTracker:
    return current_app.extensions["technology_tracker"]


def technology_to_ui(t: Technology) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "vendor": t.vendor,
        "category": t.category,
        "cpe": t.cpe,
        "currentVersion": t.current_version,
        "latestVersion": t.latest_version,
        "secureVersion": t.secure_version,
        "status": t.status,
        "vulnerabilityCount": t.vulnerability_count,
        "criticalCount": t.critical_count,
        "highCount": t.high_count,
        "topCves": [c.to_dict() for c in t.top_cves] if t.top_cves is not None else None,
        "lastCheckedAt": iso(t.last_checked_at),
        "createdAt": iso(t.created_at),
    }


@technologies_bp.get("")
def list_technologies():
    return jsonify([technology_to_ui(t) for t in _tracker().list()]), 200


@technologies_bp.post("")
def add_technology():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    fields = {attr: body.get(key) for key, attr in _INPUT_FIELDS.items() if key in body}
    tech = _tracker().add(**fields)
    return jsonify(technology_to_ui(tech)), 201


@technologies_bp.delete("/<technology_id>")
def delete_technology(technology_id: str):
    _tracker().delete(technology_id)
    return jsonify(success=True), 200


@technologies_bp.post("/check")
def check_all_technologies():
    tracker = _tracker()

    if tracker.bulk_check_running:
        return jsonify(message="CVE check already in progress", status="running"), 202

    def _run_in_background():
        try:
            tracker.run_bulk_check()
        except Exception:
            logger.exception("Background CVE check failed")

    thread = threading.Thread(target=_run_in_background, daemon=True)
    thread.start()

    return jsonify(message="CVE check started", status="running"), 202


@technologies_bp.post("/<technology_id>/check")
def check_technology(technology_id: str):
    tech = _tracker().check_one(technology_id)
    return jsonify(technology_to_ui(tech)), 200
