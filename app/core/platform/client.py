"""Low-level HTTP client for the platform management API.

Handles authentication, the TLS profile and uniform response handling.
"""
from __future__ import annotations
import json as jsonlib
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from .exceptions import PlatformAPIError, PlatformAuthenticationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class PlatformClient:
    """HTTP client for the platform management API.

    One instance serves one token exchange: the bearer token obtained by
    :meth:`authenticate` lives on the instance and is never shared.

    Usage:
        client = PlatformClient("https://platform.example.org/api")
        client.authenticate("admin", "password", "client", "secret", "admin/default-idp-1")
        roles = client.get("/orgs/admin/roles", params={"fields": "name,title,url"})
    """

    def __init__(
        self,
        base_url: str,
        verify: Union[bool, str] = True,
        cert: Optional[Tuple[str, str]] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """Initialize platform client.

        Args:
            base_url: Platform API base URL, e.g. https://platform.example.org/api
            verify: TLS verification flag or CA bundle path
            cert: Optional (certificate, key) pair for mutual TLS
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.verify = verify
        self.cert = cert
        self.timeout = timeout
        self._token: Optional[str] = None

    @classmethod
    def from_config(cls, cfg) -> "PlatformClient":
        """Build a client from :class:`app.config.AppConfig`."""
        return cls(
            cfg.platform_endpoint,
            verify=cfg.platform_tls_verify,
            cert=cfg.platform_client_cert,
            timeout=cfg.platform_timeout,
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def authenticate(
        self,
        username: str,
        password: str,
        client_id: str,
        client_secret: str,
        realm: str,
    ) -> str:
        """Obtain a bearer token with the password grant and keep it for later calls.

        Returns:
            Access token

        Raises:
            PlatformAPIError: On HTTP or transport error
            PlatformAuthenticationError: If the response carries no access token
        """
        payload = self.request("post", "/token", body={
            "username": username,
            "password": password,
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "password",
            "realm": realm,
        })
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise PlatformAuthenticationError("Token response did not contain an access_token")
        self._token = token
        return token

    def request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Any] = None,
        params: Optional[Dict[str, str]] = None,
        expect: Optional[type] = None,
    ) -> Any:
        """Call a platform resource and return its parsed JSON body.

        Args:
            method: HTTP method
            path: Resource path relative to the base URL (e.g. "/orgs/admin/members")
            headers: Extra headers merged over the JSON defaults
            body: Payload serialized as JSON when not None
            params: Query parameters
            expect: Required type of the parsed body (e.g. dict)

        Returns:
            Parsed JSON response

        Raises:
            PlatformAPIError: On transport error, status >= 300, invalid JSON
                or a body that is not of the ``expect`` type
        """
        method = method.upper()
        url = f"{self.base_url}{path}"
        request_headers = dict(DEFAULT_HEADERS)
        if self._token:
            request_headers["Authorization"] = f"Bearer {self._token}"
        if headers:
            request_headers.update(headers)
        data = jsonlib.dumps(body) if body is not None else None

        logger.debug("platform request %s:%s", method, path)

        try:
            resp = requests.request(
                method,
                url,
                params=params,
                data=data,
                headers=request_headers,
                verify=self.verify,
                cert=self.cert,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            logger.error("Transport error on %s %s: %s", method, url, e)
            raise PlatformAPIError(0, str(e), url, method) from e

        self._handle_error(resp, method, url)

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error("Unparseable response from %s %s: %s", method, url, e)
            raise PlatformAPIError(resp.status_code, f"Invalid JSON response: {e}", url, method, resp) from e

        if expect is not None and not isinstance(payload, expect):
            logger.error("Unexpected response from %s %s: %s", method, url, type(payload).__name__)
            raise PlatformAPIError(
                resp.status_code,
                f"Unexpected JSON response: expected {expect.__name__}, got {type(payload).__name__}",
                url, method, resp,
            )
        return payload

    def get(self, path: str, params: Optional[Dict[str, str]] = None, **kwargs) -> Any:
        return self.request("get", path, params=params, **kwargs)

    def get_results(self, path: str, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """GET a collection resource and return its ``results`` objects.

        Raises:
            PlatformAPIError: If the body is not an object or ``results`` is
                not a list of objects
        """
        payload = self.request("get", path, params=params, expect=dict)
        results = payload.get("results") or []
        if not isinstance(results, list) or not all(isinstance(item, dict) for item in results):
            url = f"{self.base_url}{path}"
            logger.error("Unexpected results in response from GET %s", url)
            raise PlatformAPIError(200, "Unexpected JSON response: results is not a list of objects", url, "GET")
        return results

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> Any:
        return self.request("post", path, body=json, **kwargs)

    def patch(self, path: str, json: Optional[Any] = None, **kwargs) -> Any:
        return self.request("patch", path, body=json, **kwargs)

    def _handle_error(self, resp: requests.Response, method: str, url: str) -> None:
        """Centralized error handling for HTTP responses.

        Any status >= 300 is a failure. Redirects are not followed, so a
        3xx reaches this check.

        Raises:
            PlatformAPIError: If response status indicates error
        """
        if resp.status_code >= 300:
            logger.error(
                "Non 2xx response from %s %s: status=%s body=%s",
                method, url, resp.status_code, resp.text,
            )
            raise PlatformAPIError(resp.status_code, resp.text, url, method, resp)
