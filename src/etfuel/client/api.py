"""
HTTP client for the etfuel authentication API.
"""

from typing import Any

import httpx

from etfuel.shared.logging import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """The API answered with an error envelope."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class EtfuelApiClient:
    """Thin wrapper over the ``/api/auth`` routes.

    Transport failures propagate as ``httpx.TransportError``.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        id_token: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {id_token}"} if id_token else None
        response = await self._http.request(
            method,
            f"{self._base_url}{path}",
            json=json,
            params=params,
            headers=headers,
        )
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.status_code >= 400 or not payload.get("success", False):
            message = payload.get("error") or f"Request failed with status {response.status_code}"
            logger.info(
                "API request failed",
                extra={"path": path, "status_code": response.status_code},
            )
            raise ApiError(message, response.status_code)
        return payload

    async def login(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/auth/login", json={"email": email, "password": password}
        )

    async def register(self, email: str, password: str, name: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )

    async def logout(self) -> dict[str, Any]:
        return await self._request("POST", "/api/auth/logout")

    async def user_data(self, user_id: str, id_token: str | None = None) -> dict[str, Any]:
        """Profile record for ``user_id`` (the ``userData`` member of the envelope)."""
        payload = await self._request(
            "GET",
            "/api/auth/user-data",
            params={"userId": user_id},
            id_token=id_token,
        )
        return payload["userData"]
