from __future__ import annotations

from typing import Any, Dict

import httpx

from .client import ClarificationRequest, IntakeRequest


class AsyncDecisionCopilotClient:
    """Async variant of :class:`DecisionCopilotClient` for use inside event loops."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # Lens calls run for tens of seconds, hence the long default timeout.
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "AsyncDecisionCopilotClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, path: str, body: Dict[str, Any] | None = None) -> dict:
        response = await self._http.request(method, path, json=body)
        response.raise_for_status()
        return response.json()

    async def submit_intake(self, request: IntakeRequest) -> dict:
        return await self._call("POST", "decision/run", request.to_body())

    async def submit_clarification(self, request: ClarificationRequest) -> dict:
        return await self._call("POST", "decision/run", request.to_body())

    async def get_run(self, run_id: str) -> dict:
        return await self._call("GET", f"decision/run/{run_id}")

    async def list_runs(self, decision_id: str) -> dict:
        return await self._call("GET", f"decision/{decision_id}/runs")
