"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the token proxy with its blueprints, error handlers and configuration.
"""
from __future__ import annotations
import logging
from typing import Optional

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from app.config import AppConfig, load_settings
from app.core.directory import DirectoryGroupClient
from app.core.provisioning_service import ProvisioningOrchestrator


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, directory: Optional[DirectoryGroupClient] = None) -> Flask:
    """Create and configure the token proxy application.

    Args:
        cfg: Configuration to use instead of loading it from the environment
        directory: Directory group source (defaults to LDAP from cfg)
    """
    cfg = cfg or load_settings()
    _configure_logging(cfg.log_level)

    app = Flask(__name__)

    # Store config and provisioner for easy access in routes
    app.config["APP_CONFIG"] = cfg
    app.config["PROVISIONER"] = ProvisioningOrchestrator(cfg, directory=directory)

    # Trust X-Forwarded-* headers from the fronting proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    # Register blueprints
    from app.api import errors, health, token

    app.register_blueprint(token.bp)
    app.register_blueprint(health.bp)

    # Register error handlers
    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    app.logger.info(f"[flask_app] Mode={mode_label}; token proxy registered at /oauth2/token")
    if cfg.demo_mode:
        app.logger.warning("[flask_app] Demo mode active - do not deploy with demo credentials")

    return app


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
