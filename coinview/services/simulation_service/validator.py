"""
Simulation request validation.

Every rule is checked independently and every violation is returned, so a
caller can show all problems at once. Nothing here raises on bad input.
"""
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Union

from .models import (
    MAX_COINS,
    MAX_PERIOD_DAYS,
    MIN_COINS,
    MIN_PERIOD_DAYS,
    OptimizationType,
    RiskTolerance,
    SimulationRequest,
    Timeframe,
    ValidationIssue,
)

RequestLike = Union[SimulationRequest, Mapping[str, Any]]

_SECONDS_PER_DAY = 60 * 60 * 24


def _get(data: Mapping[str, Any], alias: str, name: str) -> Any:
    """Read a field by its wire name, falling back to the Python name."""
    if alias in data:
        return data[alias]
    return data.get(name)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse an ISO date/datetime (or date object) into an aware UTC datetime.
    Returns None when the value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_choice(
    issues: List[ValidationIssue],
    value: Any,
    field: str,
    allowed: type,
    label: str,
    required: bool,
) -> None:
    if value is None or value == "":
        if required:
            issues.append(ValidationIssue(field=field, message=f"{label} is required"))
        return
    try:
        allowed(value)
    except ValueError:
        issues.append(ValidationIssue(field=field, message=f"Unsupported {label.lower()}: {value}"))


def validate(request: RequestLike, now: Optional[Callable[[], datetime]] = None) -> List[ValidationIssue]:
    """
    Check a (possibly partial) simulation request.

    Args:
        request: SimulationRequest or a mapping with wire or Python field names
        now: Clock used for the "end date not in the future" rule

    Returns:
        List of issues; empty means the request may be submitted
    """
    if isinstance(request, SimulationRequest):
        data = request.model_dump(mode="json", by_alias=True)
    else:
        data = request or {}

    issues: List[ValidationIssue] = []

    coins = data.get("coins")
    coin_count = len(coins) if isinstance(coins, (list, tuple)) else 0
    if coin_count < MIN_COINS:
        issues.append(ValidationIssue(
            field="coins", message=f"At least {MIN_COINS} cryptocurrencies must be selected"
        ))
    if coin_count > MAX_COINS:
        issues.append(ValidationIssue(
            field="coins", message=f"Maximum {MAX_COINS} cryptocurrencies allowed"
        ))

    date_range = _get(data, "dateRange", "date_range")
    if not isinstance(date_range, Mapping):
        date_range = {}
    raw_start = _get(date_range, "startDate", "start_date")
    raw_end = _get(date_range, "endDate", "end_date")
    if raw_start in (None, "") or raw_end in (None, ""):
        issues.append(ValidationIssue(field="dateRange", message="Start and end dates are required"))
    else:
        start, end = parse_date(raw_start), parse_date(raw_end)
        if start is None or end is None:
            issues.append(ValidationIssue(field="dateRange", message="Dates must be in ISO format"))
        else:
            current = (now or (lambda: datetime.now(timezone.utc)))()
            if current.tzinfo is None:
                current = current.replace(tzinfo=timezone.utc)

            if start >= end:
                issues.append(ValidationIssue(field="dateRange", message="Start date must be before end date"))
            if end > current:
                issues.append(ValidationIssue(field="dateRange", message="End date cannot be in the future"))

            days = (end - start).total_seconds() / _SECONDS_PER_DAY
            if days < MIN_PERIOD_DAYS:
                issues.append(ValidationIssue(
                    field="dateRange", message=f"Simulation period must be at least {MIN_PERIOD_DAYS} days"
                ))
            if days > MAX_PERIOD_DAYS:
                issues.append(ValidationIssue(field="dateRange", message="Simulation period cannot exceed 5 years"))

    investment = _get(data, "initialInvestment", "initial_investment")
    if not _is_number(investment) or investment <= 0:
        issues.append(ValidationIssue(
            field="initialInvestment", message="Initial investment must be greater than 0"
        ))

    _check_choice(
        issues, _get(data, "optimizationType", "optimization_type"),
        "optimizationType", OptimizationType, "Optimization type", required=True,
    )
    _check_choice(issues, data.get("timeframe"), "timeframe", Timeframe, "Timeframe", required=True)
    _check_choice(
        issues, _get(data, "riskTolerance", "risk_tolerance"),
        "riskTolerance", RiskTolerance, "Risk tolerance", required=False,
    )

    return issues


def messages(issues: List[ValidationIssue]) -> List[str]:
    return [issue.message for issue in issues]
