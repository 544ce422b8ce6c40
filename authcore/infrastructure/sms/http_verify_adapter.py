from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from authcore.domain.errors import DependencyUnavailable
from authcore.domain.ports.otp_delivery import CheckOutcome, OtpDeliveryPort

logger = logging.getLogger(__name__)


class HttpVerifyAdapter(OtpDeliveryPort):
    """
    Client for a verify-style SMS service: the service generates, sends and
    checks the code; we never see it.

        POST {base}/verifications          {"to", "channel"}          -> {"sid"}
        POST {base}/verification-checks    {"to", "channel", "code"}  -> {"status"}
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client: bool = client is None
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=timeout)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise DependencyUnavailable(f"sms HTTP error: {e}") from e

        if resp.status_code >= 500 or resp.status_code == 429:
            raise DependencyUnavailable(
                f"sms service responded {resp.status_code}: {resp.text[:200]}"
            )
        if resp.status_code == 404:
            # expired or unknown dispatch
            return {}
        if not (200 <= resp.status_code < 300):
            raise DependencyUnavailable(
                f"sms service rejected request {resp.status_code}: {resp.text[:200]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise DependencyUnavailable("sms service returned invalid JSON") from e

    async def send_one_time_code(self, channel: str, destination: str) -> str:
        body = await self._post("/verifications", {"to": destination, "channel": channel})
        sid = body.get("sid")
        if not sid:
            raise DependencyUnavailable("sms service did not return a dispatch id")
        return str(sid)

    async def check_one_time_code(
        self, channel: str, destination: str, code: str
    ) -> CheckOutcome:
        body = await self._post(
            "/verification-checks",
            {"to": destination, "channel": channel, "code": code},
        )
        status = body.get("status")
        logger.debug("sms code check", extra={"status": status})
        return "approved" if status == "approved" else "denied"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
