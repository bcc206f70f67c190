"""
Client for the external portfolio optimizer (agent-finance service).

Requests are never retried: a retry could start a second, expensive
optimization run. Every failure surfaces as SimulationError.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from coinview.shared.config import settings
from coinview.shared.exceptions import SimulationError
from .models import HistoryPage, SimulationRequest, SimulationResponse

logger = logging.getLogger(__name__)


class OptimizerClient:
    """Async client for `{AGENT_FINANCE_BASE_URL}/api/simulation`."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self.base_url = f"{(base_url or settings.AGENT_FINANCE_BASE_URL).rstrip('/')}/api/simulation"
        self.client = client or httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT,
            headers={"Content-Type": "application/json"},
        )

    async def _send(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        error_code: str = "NETWORK_ERROR",
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Optimizer request {method} {path} failed: {e}")
            raise SimulationError(f"Network error: {e}", status=0, code=error_code)

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            message = body.get("message") or f"HTTP {response.status_code}: {response.reason_phrase}"
            logger.warning(f"Optimizer {method} {path} returned {response.status_code}: {message}")
            raise SimulationError(message, status=response.status_code, code=body.get("code"))
        return response

    @staticmethod
    def _json(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError:
            raise SimulationError(
                f"Invalid JSON from optimizer {path}", status=response.status_code, code="MALFORMED_BODY"
            )

    def _parse_simulation(self, response: httpx.Response, path: str) -> SimulationResponse:
        try:
            return SimulationResponse.model_validate(self._json(response, path))
        except ValidationError as e:
            raise SimulationError(
                f"Malformed simulation response from {path}: {e.error_count()} errors",
                status=response.status_code,
                code="MALFORMED_BODY",
            )

    async def optimize(self, request: SimulationRequest) -> SimulationResponse:
        """Run a portfolio optimization."""
        logger.info(
            f"Submitting {request.optimization_type.value} optimization for {len(request.coins)} coins"
        )
        response = await self._send("POST", "/optimize", json=request.to_wire())
        return self._parse_simulation(response, "/optimize")

    async def run_backtest(self, request: SimulationRequest) -> SimulationResponse:
        """Run an advanced backtest."""
        response = await self._send("POST", "/backtest", json=request.to_wire())
        return self._parse_simulation(response, "/backtest")

    async def get_history(
        self,
        page: int = 1,
        limit: int = 10,
        optimization_type: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> HistoryPage:
        """Fetch one page of server-side simulation history."""
        params = {
            "page": page,
            "limit": limit,
            "optimizationType": optimization_type,
            "status": status,
            "dateFrom": date_from,
            "dateTo": date_to,
        }
        params = {k: v for k, v in params.items() if v}
        response = await self._send("GET", "/history", params=params)
        try:
            return HistoryPage.model_validate(self._json(response, "/history"))
        except ValidationError as e:
            raise SimulationError(
                f"Malformed history page: {e.error_count()} errors",
                status=response.status_code,
                code="MALFORMED_BODY",
            )

    async def get_simulation(self, simulation_id: str) -> SimulationResponse:
        path = f"/history/{simulation_id}"
        response = await self._send("GET", path)
        return self._parse_simulation(response, path)

    async def delete_simulation(self, simulation_id: str) -> None:
        await self._send("DELETE", f"/history/{simulation_id}")

    async def check_health(self) -> Dict[str, Any]:
        """Health check of the optimizer API."""
        response = await self._send("GET", "/health", error_code="HEALTH_CHECK_ERROR")
        return self._json(response, "/health")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
