"""
Exception hierarchy for CoinView.

Pure computations (filtering, ranking, live stats) never raise these; they
are used at the network boundary and by the strict decimal parser.
"""
from typing import Optional


class CoinViewError(Exception):
    """Base class for all CoinView errors."""


class NetworkError(CoinViewError):
    """
    A fetch against an upstream service failed.

    Covers timeouts, transport failures, non-2xx responses and bodies that
    do not have the expected shape.
    """

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    def __str__(self) -> str:
        return self.message


class SimulationError(NetworkError):
    """Failure reported by (or while reaching) the portfolio optimizer."""


class DataShapeError(ValueError, CoinViewError):
    """A numeric field transmitted as a decimal string could not be parsed."""

    def __init__(self, value: object, field: Optional[str] = None):
        self.value = value
        self.field = field
        where = f" for field '{field}'" if field else ""
        super().__init__(f"Malformed decimal value{where}: {value!r}")


class StorageError(CoinViewError):
    """The durable key-value backend could not be read or written."""
