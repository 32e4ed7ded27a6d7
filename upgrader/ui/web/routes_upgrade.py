"""
Upgrade routes — REST endpoints for status, upgrades and the event log.

All endpoints return JSON. Grouped under /api/upgrade/ prefix.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from flask import Blueprint, current_app, jsonify, request

from upgrader.core.services.upgrade_service import UpgradeService

logger = logging.getLogger(__name__)

upgrade_bp = Blueprint("upgrade", __name__)


def _service() -> UpgradeService:
    return current_app.extensions["upgrade_service"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ── Status ───────────────────────────────────────────────────────────


@upgrade_bp.route("/status")
def api_status():  # type: ignore[no-untyped-def]
    """Deployed vs. latest version of every module."""
    statuses = _service().get_modules_status()
    return jsonify({
        "timestamp": _now_iso(),
        "modules": [s.model_dump(mode="json") for s in statuses],
    })


# ── Upgrade ──────────────────────────────────────────────────────────


@upgrade_bp.route("/upgrade", methods=["POST"])
def api_upgrade():  # type: ignore[no-untyped-def]
    """Upgrade one module (``{"module": ...}``) or a batch.

    ``{"modules": [...]}`` upgrades the named modules; an empty body
    upgrades every configured module.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    module = data.get("module")
    if module:
        if not isinstance(module, str):
            return jsonify({"error": "'module' must be a string"}), 400
        return jsonify(_service().upgrade_module(module).to_dict())

    modules = data.get("modules")
    if modules is not None and (
        not isinstance(modules, list) or not all(isinstance(m, str) for m in modules)
    ):
        return jsonify({"error": "'modules' must be a list of names"}), 400

    outcomes = _service().batch_upgrade(modules)
    return jsonify([o.to_dict() for o in outcomes])


# ── Log ──────────────────────────────────────────────────────────────


@upgrade_bp.route("/log")
def api_log():  # type: ignore[no-untyped-def]
    """Recent pipeline events, optionally for one module."""
    module = request.args.get("module") or None
    limit = request.args.get("limit", 100, type=int)
    return jsonify({
        "timestamp": _now_iso(),
        "logs": _service().recent_events(module=module, limit=limit),
    })
