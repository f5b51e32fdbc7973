"""
Error taxonomy
Every failure the budget engine can report, independent of the HTTP layer.
"""
from typing import Any, List, Optional


class SpendwiseError(Exception):
    """Base class for all domain errors."""

    kind = "error"

    def __init__(self, message: str, details: Optional[List[Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InvalidInput(SpendwiseError):
    """Bad income, malformed category data or an invalid budget set."""

    kind = "invalid_input"


class Unauthorized(SpendwiseError):
    """No caller identity."""

    kind = "unauthorized"


class GenerationFailed(SpendwiseError):
    """Generation capability unreachable, timed out after retry, or errored."""

    kind = "generation_failed"


class SchemaViolation(SpendwiseError):
    """Generation capability responded but the plan has the wrong shape."""

    kind = "schema_violation"


class PersistenceFailure(SpendwiseError):
    """Store error during read or replace."""

    kind = "persistence_failure"


class TransientGenerationError(Exception):
    """Raised by a generation capability when a retry may succeed."""
