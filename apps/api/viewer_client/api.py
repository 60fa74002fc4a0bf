"""HTTP client for the access gate and viewer endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx


class AccessClient:
    """Thin async wrapper over the public API used by one viewer tab."""

    VERIFY_ACCESS_PATH = "/verify-access"

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AccessClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _action(self, action: str, **fields: str) -> Dict[str, Any]:
        """POST an access action; error statuses still carry a JSON body."""
        response = await self._client.post(self.VERIFY_ACCESS_PATH, json={"action": action, **fields})
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        if response.status_code >= 500 and "error" not in body:
            response.raise_for_status()
        return body

    async def send_otp(self, token: str) -> Dict[str, Any]:
        return await self._action("send_otp", token=token)

    async def verify_otp(self, token: str, code: str) -> Dict[str, Any]:
        return await self._action("verify_otp", token=token, code=code)

    async def validate_session(self, token: str, session_token: str) -> Dict[str, Any]:
        return await self._action("validate_session", token=token, session_token=session_token)

    async def get_link(self, token: str) -> Optional[Dict[str, Any]]:
        response = await self._client.get(f"/viewer/links/{token}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def get_proposal(self, token: str, session_token: str) -> Dict[str, Any]:
        response = await self._client.get(
            f"/viewer/links/{token}/proposal",
            headers={"X-Viewer-Session": session_token},
        )
        response.raise_for_status()
        return response.json()

    async def start_view(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post("/viewer/views", json=payload)
        response.raise_for_status()
        return response.json()

    async def enter_slide(self, view_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(f"/viewer/views/{view_id}/slides", json=payload)
        response.raise_for_status()
        return response.json()

    async def exit_slide(self, event_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.patch(f"/viewer/slides/{event_id}", json=payload)
        response.raise_for_status()
        return response.json()
