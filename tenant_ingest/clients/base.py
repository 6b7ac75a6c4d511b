"""
Shared plumbing for bearer-authenticated JSON clients built on httpx.
"""

from typing import Any

import httpx

from tenant_ingest.clients.auth import TokenSupplier
from tenant_ingest.core.exceptions import RemoteServiceError
from tenant_ingest.observability.metrics import record_remote_failure, time_remote_call


class AuthenticatedClient:
    """
    Base class for remote service clients.

    Owns an httpx.Client (created here unless one is injected) and adds a
    fresh bearer token to every request.
    """

    def __init__(
        self,
        base_url: str,
        token_supplier: TokenSupplier,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Service base URL
            token_supplier: Source of bearer tokens
            timeout: Request timeout in seconds (None: wait indefinitely)
            http_client: Pre-built httpx client (e.g. with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.token_supplier = token_supplier
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def _headers(self, content_type: str = "application/json") -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token_supplier.get()}",
            "Content-Type": content_type,
        }

    def _request(
        self,
        method: str,
        url: str,
        operation: str,
        error_cls: type[RemoteServiceError],
        error_message: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        content_type: str = "application/json",
    ) -> httpx.Response:
        """
        Send one request, raising ``error_cls`` unless the response is 2xx.
        """
        # Token refresh failures are auth errors, not remote call failures
        headers = self._headers(content_type)
        with time_remote_call(operation):
            try:
                response = self._http.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    content=content,
                    headers=headers,
                )
            except httpx.HTTPError as e:
                raise error_cls(f"{error_message}: {e}") from e

        if not response.is_success:
            record_remote_failure(operation)
            raise error_cls(error_message, status_code=response.status_code, response_body=response.text)

        return response

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
