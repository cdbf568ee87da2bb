"""Health check endpoints."""
from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Liveness check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness check: configuration is loaded and a provisioner is wired."""
    cfg = current_app.config.get("APP_CONFIG")
    if cfg is None or current_app.config.get("PROVISIONER") is None:
        return jsonify({"status": "not-ready"}), 503
    return jsonify({
        "status": "ready",
        "org": cfg.platform_org,
        "registry": cfg.platform_registry,
        "mapped_groups": len(cfg.role_mapping),
    })
