"""Token proxy with directory-driven access provisioning.

To use the Flask app:
    from app.flask_app import create_app

To run a reconciliation directly:
    from app.core.provisioning_service import ProvisioningOrchestrator
"""
# Note: We don't import flask_app by default to avoid the Flask dependency
# for CLI scripts that only use app.core
