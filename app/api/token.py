"""Token proxy endpoint.

The caller's token request is forwarded to the upstream OAuth/OIDC token
endpoint. A successful token response is held back until the subject's
platform access has been provisioned:

    200 + provisioning ok      -> upstream response, unchanged
    200 + any failure          -> {"error": "server_error", ...} (fail-closed)
    non-200                    -> upstream response, unchanged, no provisioning
"""
from __future__ import annotations
import logging
from typing import Mapping

import requests
from flask import Blueprint, Response, current_app, request

from app.api.errors import ErrorFlowGateway
from app.core.claims import identity_from_token_response
from app.core.exceptions import ProvisioningError, TokenEndpointUnreachable

bp = Blueprint("token", __name__)

logger = logging.getLogger(__name__)

FORWARDED_REQUEST_HEADERS = ("Authorization", "Content-Type", "Accept")
FORWARDED_RESPONSE_HEADERS = ("Content-Type", "Cache-Control", "Pragma", "WWW-Authenticate")

gateway = ErrorFlowGateway()


def _forward_token_request(cfg) -> requests.Response:
    """Send the incoming token request to the upstream token endpoint."""
    headers = {name: request.headers[name] for name in FORWARDED_REQUEST_HEADERS if name in request.headers}
    try:
        return requests.post(
            cfg.upstream_token_url,
            data=request.get_data(),
            headers=headers,
            timeout=cfg.platform_timeout,
            allow_redirects=False,
        )
    except requests.RequestException as e:
        logger.error("Token endpoint %s unreachable: %s", cfg.upstream_token_url, e)
        raise TokenEndpointUnreachable(str(e), cause=e) from e


def _passthrough(status_code: int, body: bytes, headers: Mapping[str, str]) -> Response:
    """Rebuild the upstream response for the caller."""
    response = Response(body, status=status_code)
    for name in FORWARDED_RESPONSE_HEADERS:
        if name in headers:
            response.headers[name] = headers[name]
    return response


def handle_token_response(cfg, provisioner, status_code: int, body: bytes, headers: Mapping[str, str]) -> Response:
    """Release the upstream token response only after provisioning succeeded.

    Args:
        cfg: Application configuration (AppConfig)
        provisioner: Object with ``provision(IdentityClaims)``
        status_code: Upstream HTTP status
        body: Upstream raw body
        headers: Upstream response headers

    Returns:
        The upstream response, or the gateway's error response
    """
    if status_code != 200:
        logger.info("Passing through upstream token response with status %s", status_code)
        return _passthrough(status_code, body, headers)

    try:
        claims = identity_from_token_response(body, cfg.id_token_jwks_url, cfg.id_token_audience)
        member = provisioner.provision(claims)
    except ProvisioningError as e:
        return gateway.reject_error(e)

    logger.info("Provisioned access for '%s' (member %s)", claims.subject, member.url or member.name)
    return _passthrough(status_code, body, headers)


@bp.route("/oauth2/token", methods=["POST"])
def token():
    """Proxy a token request and provision the subject before answering."""
    cfg = current_app.config["APP_CONFIG"]
    provisioner = current_app.config["PROVISIONER"]

    try:
        upstream = _forward_token_request(cfg)
    except TokenEndpointUnreachable as e:
        return gateway.reject_error(e)

    return handle_token_response(cfg, provisioner, upstream.status_code, upstream.content, upstream.headers)
