"""
Exception handlers mapping CoinView errors onto the standard error envelope.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from coinview.shared.error_models import ErrorCode, create_error_response
from coinview.shared.exceptions import CoinViewError, NetworkError, SimulationError

logger = logging.getLogger(__name__)


class ApiError(CoinViewError):
    """An error the HTTP layer reports as-is."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        errors: Optional[List[Dict[str, str]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.errors = errors
        self.metadata = metadata


def error_json(
    error_code: ErrorCode,
    message: str,
    status_code: int,
    detail: Optional[str] = None,
    errors: Optional[List[Dict[str, str]]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body, status_code = create_error_response(
        error_code=error_code,
        message=message,
        detail=detail,
        status_code=status_code,
        errors=errors,
        metadata=metadata,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _pydantic_errors(exc) -> List[Dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return error_json(exc.error_code, exc.message, exc.status_code, errors=exc.errors, metadata=exc.metadata)

    @app.exception_handler(SimulationError)
    async def simulation_error_handler(request: Request, exc: SimulationError):
        logger.warning(f"Optimizer error on {request.url.path}: {exc}")
        return error_json(
            ErrorCode.SIMULATION_ERROR,
            exc.message,
            502,
            metadata={"status": exc.status, "code": exc.code},
        )

    @app.exception_handler(NetworkError)
    async def network_error_handler(request: Request, exc: NetworkError):
        logger.warning(f"Upstream error on {request.url.path}: {exc}")
        return error_json(
            ErrorCode.NETWORK_ERROR,
            exc.message,
            503,
            metadata={"status": exc.status, "code": exc.code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_json(ErrorCode.VALIDATION_ERROR, "Invalid request", 422, errors=_pydantic_errors(exc))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return error_json(ErrorCode.INVALID_INPUT, "Invalid value", 422, errors=_pydantic_errors(exc))
