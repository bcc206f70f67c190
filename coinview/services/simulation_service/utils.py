"""
Simulation helpers for display strings.
"""
from typing import Union

from .models import SimulationRequest
from .validator import parse_date


def _format_date(value: str) -> str:
    parsed = parse_date(value)
    return parsed.date().isoformat() if parsed else value


def generate_simulation_name(request: SimulationRequest) -> str:
    """e.g. "SHARPE - BTC, ETH (2024-01-01 to 2025-01-01)"."""
    symbols = ", ".join(coin.symbol for coin in request.coins)
    start = _format_date(request.date_range.start_date)
    end = _format_date(request.date_range.end_date)
    return f"{request.optimization_type.value.upper()} - {symbols} ({start} to {end})"


def format_processing_time(seconds: Union[int, float]) -> str:
    """Human readable duration: 45s, 2m 5s, 1h 3m."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
