"""
Async HTTP client for the tarification API.

Usage:
    async with ApiClient(tenant_id="…") as api:
        cotation = await api.get(f"/cotations/{cotation_id}")

Every failure surfaces as ApiError: HTTP error statuses carry the response
``detail`` (``{"code", "message"}`` for domain errors), transport failures
have ``status_code=None``. There are no retries.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from tarification.config import get_settings

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"


class ApiError(Exception):
    """A request to the API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @property
    def code(self) -> Optional[str]:
        if isinstance(self.detail, dict):
            return self.detail.get("code")
        return None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = response.text or None
        detail = body.get("detail") if isinstance(body, dict) else body

        if isinstance(detail, dict) and detail.get("message"):
            message = detail["message"]
        elif isinstance(detail, list) and detail:
            # FastAPI validation errors
            message = "; ".join(str(err.get("msg", err)) for err in detail if isinstance(err, dict))
        elif isinstance(detail, str) and detail:
            message = detail
        else:
            message = f"HTTP {response.status_code}"
        return cls(message, status_code=response.status_code, detail=detail)


class ApiClient:
    """
    Thin async wrapper around httpx.AsyncClient.

    Args:
        tenant_id: Sent as the X-Tenant-ID header.
        base_url: Defaults to ``settings.api_base_url``.
        timeout: Defaults to ``settings.api_timeout_seconds``.
        transport: Optional httpx transport (ASGI app, mock, ...).
    """

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        headers = {"Accept": "application/json"}
        if tenant_id:
            headers[TENANT_HEADER] = str(tenant_id)

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.api_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None for 204)."""
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(f"Erreur réseau : {e}") from e

        if response.is_error:
            error = ApiError.from_response(response)
            logger.warning("%s %s -> %s %s", method, path, response.status_code, error.message)
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning("%s %s -> %s with a non-JSON body", method, path, response.status_code)
            raise ApiError(
                f"Réponse invalide du serveur (HTTP {response.status_code})",
                status_code=response.status_code,
                detail=response.text or None,
            ) from e

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
