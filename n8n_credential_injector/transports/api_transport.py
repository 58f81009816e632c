"""
REST API transport.

Logs in to n8n once per batch and creates each credential through
POST /api/v1/credentials using the session cookie.
"""

from typing import Any, Dict, Optional, Tuple

import requests

from ..config import N8NConfig
from ..constants import N8N_AUTH_COOKIE, N8N_CREDENTIALS_PATH, N8N_LOGIN_PATH
from ..exceptions import AuthenticationError, ErrorCode, TransportError
from ..schemas.credential_schemas import CredentialRecord, InjectionPayload
from .base import InjectionTransport

RESPONSE_EXCERPT_LENGTH = 500


class ApiTransport(InjectionTransport):
    """
    Deliver credentials through the n8n REST API.

    Example:
        transport = ApiTransport(config.n8n)
        transport.prepare()
        result = transport.inject(payload, record)
    """

    method_name = "n8n_rest_api"
    authenticates = True

    def __init__(self, n8n_config: N8NConfig, session: Optional[requests.Session] = None):
        super().__init__()
        self.n8n_config = n8n_config
        self.session = session or requests.Session()
        self.timeout = n8n_config.http_timeout_seconds
        self._auth_token: Optional[str] = None

    def _url(self, path: str) -> str:
        return f"{self.n8n_config.base_url}{path}"

    def prepare(self) -> None:
        """
        Log in and keep the auth token for the rest of the batch.

        Raises:
            AuthenticationError: If the login request fails or returns no token
        """
        url = self._url(N8N_LOGIN_PATH)
        self.logger.info("Logging in to n8n", extra={"n8n_url": self.n8n_config.base_url})

        try:
            response = self.session.post(
                url,
                json={
                    "email": self.n8n_config.user_email,
                    "password": self.n8n_config.user_password,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(
                f"n8n login request failed: {e}", transport=self.method_name, cause=e
            ) from e

        if not response.ok:
            raise AuthenticationError(
                f"n8n login failed with status {response.status_code}",
                transport=self.method_name,
                status=response.status_code,
            )

        try:
            token = (response.json().get("data") or {}).get("token")
        except ValueError as e:
            raise AuthenticationError(
                "n8n login returned a non-JSON response", transport=self.method_name, cause=e
            ) from e

        if not token:
            raise AuthenticationError(
                "n8n login response did not include a token", transport=self.method_name
            )

        self._auth_token = token
        self._prepared = True
        self.logger.info("Authenticated with n8n")

    def _deliver(
        self, payload: InjectionPayload, record: CredentialRecord
    ) -> Tuple[str, Dict[str, Any]]:
        if not self._auth_token:
            raise TransportError(
                "Transport is not authenticated; call prepare() first",
                transport=self.method_name,
                error_type="api_not_authenticated",
            )

        try:
            response = self.session.post(
                self._url(N8N_CREDENTIALS_PATH),
                json=payload.to_api_body(),
                headers={"Cookie": f"{N8N_AUTH_COOKIE}={self._auth_token}"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportError(
                f"n8n credential request timed out after {self.timeout}s",
                transport=self.method_name,
                error_code=ErrorCode.TIMEOUT_ERROR,
                cause=e,
                error_type="api_timeout",
            ) from e
        except requests.RequestException as e:
            raise TransportError(
                f"n8n credential request failed: {e}",
                transport=self.method_name,
                error_code=ErrorCode.CONNECTION_ERROR,
                cause=e,
                error_type="api_request_error",
            ) from e

        if not response.ok:
            raise TransportError(
                f"n8n rejected credential with status {response.status_code}: "
                f"{response.text[:RESPONSE_EXCERPT_LENGTH]}",
                transport=self.method_name,
                error_code=ErrorCode.EXTERNAL_API_ERROR,
                error_type="api_http_error",
                status=response.status_code,
            )

        try:
            credential_id = (response.json().get("data") or {}).get("id")
        except ValueError as e:
            raise TransportError(
                "n8n returned a non-JSON response for credential creation",
                transport=self.method_name,
                error_code=ErrorCode.INVALID_FORMAT,
                cause=e,
                error_type="api_invalid_response",
            ) from e

        if not credential_id:
            raise TransportError(
                "n8n response did not include a credential id",
                transport=self.method_name,
                error_code=ErrorCode.INVALID_FORMAT,
                error_type="api_invalid_response",
            )

        self.logger.info(
            "Credential created through n8n API",
            extra={"user_id": record.user_id, "provider": record.provider, "credential_id": credential_id},
        )
        return str(credential_id), {"status": response.status_code}

    def close(self) -> None:
        self._auth_token = None
        self._prepared = False
        self.session.close()
