"""
Error envelope shared by every CoinView API error response.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    # request and model validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    NOT_FOUND = "NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    # CoinCap and the optimizer
    NETWORK_ERROR = "NETWORK_ERROR"
    SIMULATION_ERROR = "SIMULATION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # wizard transitions
    WIZARD_CLOSED = "WIZARD_CLOSED"
    WIZARD_BUSY = "WIZARD_BUSY"
    STEP_NOT_ALLOWED = "STEP_NOT_ALLOWED"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorResponse(BaseModel):
    """
    Body of every non-2xx response.

    `errors` lists each validation issue as {"field", "message"} so a form can
    show all of them at once; `field` is only set when a single field is at fault.
    """
    error: bool = True
    error_code: ErrorCode
    message: str
    detail: Optional[str] = None
    field: Optional[str] = None
    errors: List[Dict[str, str]] = Field(default_factory=list)
    timestamp: str = Field(default_factory=_utc_timestamp)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "error": True,
                "error_code": "VALIDATION_ERROR",
                "message": "Simulation request is invalid",
                "errors": [
                    {"field": "coins", "message": "At least 2 cryptocurrencies must be selected"},
                ],
                "timestamp": "2025-06-01T12:00:00Z",
                "metadata": {},
            }
        }


def create_error_response(
    error_code: ErrorCode,
    message: str,
    detail: Optional[str] = None,
    field: Optional[str] = None,
    status_code: int = 400,
    errors: Optional[List[Dict[str, str]]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Tuple[ErrorResponse, int]:
    """Build the envelope and pass the HTTP status through alongside it."""
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        detail=detail,
        field=field,
        errors=errors or [],
        metadata=metadata or {},
    )
    return body, status_code
