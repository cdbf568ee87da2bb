"""Token response parsing and id_token claim extraction."""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient

from app.core.exceptions import (
    ClaimsDecodeFailed,
    MissingIdToken,
    MissingSubjectClaim,
    ResponseParseFailed,
)
from app.core.models import IdentityClaims

logger = logging.getLogger(__name__)

ID_TOKEN_ALGORITHMS = ["RS256", "RS384", "RS512", "ES256", "ES384", "PS256"]


def parse_token_response(body: bytes) -> Dict[str, Any]:
    """Parse the token endpoint body as a JSON object.

    Raises:
        ResponseParseFailed: If the body is not a JSON object
    """
    try:
        payload = json.loads(body)
    except (TypeError, ValueError, UnicodeDecodeError) as e:
        logger.error("Token response is not valid JSON: %s", e)
        raise ResponseParseFailed(str(e), cause=e) from e
    if not isinstance(payload, dict):
        logger.error("Token response is not a JSON object: %s", type(payload).__name__)
        raise ResponseParseFailed("Token response is not a JSON object")
    return payload


def decode_id_token(id_token: str, jwks_url: str = "", audience: str = "") -> Dict[str, Any]:
    """Decode the id_token into its claims.

    With ``jwks_url`` the signature (and expiry) is verified against the
    provider's keys; without it the claims are read as-is, since the token
    was just received from the token endpoint itself.

    Raises:
        ClaimsDecodeFailed: If the token cannot be decoded or verified
    """
    try:
        if jwks_url:
            signing_key = PyJWKClient(jwks_url).get_signing_key_from_jwt(id_token)
            claims = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=ID_TOKEN_ALGORITHMS,
                audience=audience or None,
                options={"verify_aud": bool(audience)},
                leeway=5,
            )
        else:
            claims = jwt.decode(id_token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.error("id_token decode failed: %s", e)
        raise ClaimsDecodeFailed(str(e), cause=e) from e

    if not isinstance(claims, dict):
        raise ClaimsDecodeFailed("id_token payload is not a JSON object")
    return claims


def _optional_str(claims: Dict[str, Any], name: str) -> Optional[str]:
    value = claims.get(name)
    return value if isinstance(value, str) and value else None


def identity_from_claims(claims: Dict[str, Any]) -> IdentityClaims:
    """Build :class:`IdentityClaims` from decoded id_token claims.

    Raises:
        MissingSubjectClaim: If ``sub`` is absent or empty
    """
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.error("id_token has no usable sub claim")
        raise MissingSubjectClaim()
    return IdentityClaims(
        subject=subject,
        given_name=_optional_str(claims, "given_name"),
        family_name=_optional_str(claims, "family_name"),
        email=_optional_str(claims, "email"),
    )


def identity_from_token_response(body: bytes, jwks_url: str = "", audience: str = "") -> IdentityClaims:
    """Run the full extraction: parse body, find id_token, decode, read sub."""
    payload = parse_token_response(body)

    id_token = payload.get("id_token")
    if not id_token or not isinstance(id_token, str):
        logger.error("Token response has no id_token")
        raise MissingIdToken()

    return identity_from_claims(decode_id_token(id_token, jwks_url, audience))
