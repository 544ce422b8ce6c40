from __future__ import annotations

from typing import Literal, Protocol

CheckOutcome = Literal["approved", "denied"]


class OtpDeliveryPort(Protocol):
    async def send_one_time_code(self, channel: str, destination: str) -> str:
        """Dispatch a code to destination; return the dispatch id."""

    async def check_one_time_code(
        self, channel: str, destination: str, code: str
    ) -> CheckOutcome:
        """Ask the collaborator whether code matches the last dispatch."""
