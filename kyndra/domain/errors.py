"""Exceptions raised by the service layer and mapped to HTTP in ``kyndra.main``."""

from __future__ import annotations

from pydantic import BaseModel

# Structured codes the row store attaches to missing-column errors
UNDEFINED_COLUMN = "42703"
SCHEMA_CACHE_MISS = "PGRST204"


class StoreError(BaseModel):
    """Error payload returned by the row store alongside ``data=None``."""

    message: str
    code: str | None = None
    details: str | None = None


def is_schema_mismatch(error: StoreError | None) -> bool:
    """True when *error* means an expected column is absent from the store."""
    if error is None:
        return False
    if error.code in (UNDEFINED_COLUMN, SCHEMA_CACHE_MISS):
        return True
    if error.code:
        return False
    # Older backends only report the message
    message = error.message or ""
    return "schema cache" in message or ("column" in message and "does not exist" in message)


class KyndraError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(KyndraError):
    """Not signed in, or the session could not be resolved."""


class ValidationFailed(KyndraError):
    """A required form field is missing; raised before any store call."""


class NotFound(KyndraError):
    pass


class StoreFailure(KyndraError):
    """A row-store query or mutation failed; the message is shown verbatim."""

    def __init__(self, error: StoreError) -> None:
        super().__init__(error.message)
        self.error = error
