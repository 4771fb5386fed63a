# =============================================================================
# File: vulnscope/scans/routes.py
# Description: Scan routes: submit, list, inspect and cancel assessment runs.
#   Completion happens on a background timer owned by the ScanManager, so
#   POST returns immediately with the scan in "running"; the frontend
#   polls GET /api/scans/<id> until it reaches a terminal status.
#
# Endpoints:
#   - GET   /api/scans                 list scans, newest first
#   - POST  /api/scans                 submit (create + start) a scan
#   - GET   /api/scans/<id>            scan detail
#   - GET   /api/scans/<id>/findings   findings of a scan
#   - GET   /api/scans/<id>/summary    severity counts, score and grade
#   - PATCH /api/scans/<id>/cancel     cancel a pending/running scan
#
# Engine errors (validation, not found, invalid state) are turned into
# JSON responses by the EngineError handler in the app factory.
# =============================================================================

from __future__ import annotations

import logging
from flask import Blueprint, current_app, jsonify, request

from vulnscope.errors import ValidationError
from vulnscope.scanner.base import SecurityFinding, SecurityScan, iso
from vulnscope.scanner.lifecycle import ScanManager

logger = logging.getLogger(__name__)

scans_bp = Blueprint("scans", __name__, url_prefix="/api/scans")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _manager() -> ScanManager:
    return current_app.extensions["scan_manager"]


def _opt_str(body: dict, key: str):
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip() or None


def scan_to_ui(s: SecurityScan) -> dict:
    return {
        "id": s.id,
        "target": s.target,
        "status": s.status,
        "configuration": s.configuration.to_dict(),
        "initiatedAt": iso(s.initiated_at),
        "completedAt": iso(s.completed_at),
        "overallScore": s.overall_score,
        "consultantName": s.consultant_name,
        "clientName": s.client_name,
        "projectName": s.project_name,
    }


def finding_to_ui(f: SecurityFinding) -> dict:
    return {
        "id": f.id,
        "scanId": f.scan_id,
        "category": f.category,
        "severity": f.severity,
        "title": f.title,
        "description": f.description,
        "evidence": f.evidence,
        "recommendation": f.recommendation,
        "affectedResource": f.affected_resource,
        "referenceLinks": f.reference_links or None,
        "complianceTags": f.compliance_tags or None,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@scans_bp.get("")
def list_scans():
    return jsonify([scan_to_ui(s) for s in _manager().list()]), 200


@scans_bp.post("")
def submit_scan():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    configuration = body.get("configuration")
    if not isinstance(configuration, dict):
        raise ValidationError("configuration must be an object with checkTypes and scanDepth")

    scan = _manager().submit(
        body.get("target"),
        configuration,
        consultant_name=_opt_str(body, "consultantName"),
        client_name=_opt_str(body, "clientName"),
        project_name=_opt_str(body, "projectName"),
    )
    return jsonify(scan_to_ui(scan)), 201


@scans_bp.get("/<scan_id>")
def get_scan(scan_id: str):
    return jsonify(scan_to_ui(_manager().get(scan_id))), 200


@scans_bp.get("/<scan_id>/findings")
def list_findings(scan_id: str):
    findings = _manager().list_findings(scan_id)
    return jsonify([finding_to_ui(f) for f in findings]), 200


@scans_bp.get("/<scan_id>/summary")
def scan_summary(scan_id: str):
    return jsonify(_manager().summary(scan_id)), 200


@scans_bp.patch("/<scan_id>/cancel")
def cancel_scan(scan_id: str):
    scan = _manager().cancel(scan_id)
    return jsonify(scan_to_ui(scan)), 200
