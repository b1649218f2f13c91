"""Error taxonomy for the simulation engine.

Only ``ProviderError`` and ``PersistenceError`` are raised across module
boundaries. Trade rule violations come back as rejected ``TradeResult`` values
that the decision loop logs under the ``TradeValidationError`` category,
parse failures are downgraded to a hold, and missing prices end the day
without an exception.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for all simulation errors."""

    #: Category name used in the terminal log line of a trading day.
    category = "SimulationError"


class TradeValidationError(SimulationError):
    """A trade request broke a business rule (funds, shares, amount, symbol)."""

    category = "ValidationError"


class ProviderError(SimulationError):
    """The reasoning provider failed (network, timeout, non-2xx, missing key).

    Retried by ``agents.retry.RetryPolicy`` unless ``retryable`` is false
    (e.g. no API key configured, where another attempt cannot succeed).
    """

    category = "ProviderError"

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class StepFatalError(SimulationError):
    """Provider retries were exhausted; ends the agent's day."""

    category = "StepFatalError"

    def __init__(self, message: str, attempts: int = 0, last_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ParseError(SimulationError):
    """Provider text could not be decoded into a structured decision."""

    category = "ParseError"


class DataUnavailableError(SimulationError):
    """No prices exist for the requested date."""

    category = "DataUnavailableError"


class PersistenceError(SimulationError):
    """A ledger or log write could not be confirmed durable."""

    category = "PersistenceError"
